"""Generation and vision-analysis provider clients.
"""
