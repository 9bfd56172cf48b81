"""Zookeeper Ensemble Operator (zkop).

Control-loop operator that keeps Zookeeper ensembles at their declared state:
 - member count (one safe membership change per pass, never below quorum)
 - software version (rolling, one member per pass)
 - pod placement policy

Membership changes reach the running ensemble through its dynamic
reconfiguration API, so members are added and removed without a restart.
"""

__version__ = "0.1.0"
