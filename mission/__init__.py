"""
mission — Mission State Store & Incident Intelligence Engine.

Core pieces:
  mission.store          notify-on-mutate alert store
  mission.scorer         rule-based and precomputed anomaly scoring
  mission.offline_queue  ordered replay of mutations deferred while offline
  mission.fingerprint    deterministic tamper-evidence fingerprints
"""

__version__ = "1.0.0"
