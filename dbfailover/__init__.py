"""
dbfailover

Orchestrateur de failover multi-région d'un primaire de base de données:
détection, sélection du réplica le plus à jour, promotion, propagation,
validation et notification.
"""

__version__ = "1.0.0"
