"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (record store, generation
providers, file system, console, web) by implementing the interfaces defined
in the domain layer. Also includes the resilience primitives.
"""
