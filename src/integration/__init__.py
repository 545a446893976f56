"""
Scenario replay tooling for reward markets
"""
