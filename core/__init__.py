"""Core domain modules.

- swarm: agent catalog, provider adapters, orchestration, consensus and the leaderboard
- persistence: persistence boundary (interfaces)
- storage: concrete persistence implementations (in-memory, PostgreSQL)
"""
