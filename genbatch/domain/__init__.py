"""Domain Layer: value objects, errors, events and collaborator interfaces.

Has no dependency on the infrastructure layer.
"""
