"""
Lane Runner Brain - Source Package
==================================

Learning engine that decides the next control action for a lane-runner
game from perceived game state.

Modules:
    ai/    - Feature encoder, Q-network, policy, replay and persistence
    utils/ - Logging
"""

__version__ = "1.0.0"
