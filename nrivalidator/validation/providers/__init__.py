"""Default validator implementations.

Available validators:
- builtin: blanket checks on hooks, namespaces, seccomp and required plugins
"""
