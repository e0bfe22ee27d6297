"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (the Motion API, configuration
files, the terminal) by implementing the interfaces defined in the domain layer.
"""
