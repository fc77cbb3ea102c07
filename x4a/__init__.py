"""X4A swarm demonstration harness: completion proxy, paid agent servers, SDK"""
__version__ = "0.1.0"
