"""
AutoCrane - data rollout and watchdog remediation controller for Kubernetes

Watches pods in a set of namespaces, hands out content versions through a
known-good/canary rollout, and evicts pods whose watchdogs keep failing.
"""

__version__ = "0.3.0"
