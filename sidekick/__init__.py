"""
Sidekick character rules engine.

Models a Nimble-style player character: progression, trait choices,
resource pools, dice pools and dice-notation rolls.
"""

__version__ = "0.1.0"
