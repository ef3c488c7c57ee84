"""Business logic services.

``workflow`` holds the execution engine and its collaborators;
``executors`` holds the outbound clients used by action nodes.
"""
