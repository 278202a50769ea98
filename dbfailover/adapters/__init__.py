"""
Adapters

Implémentations des capacités externes:
- PostgreSQL (psycopg2): santé, lag, écriture de validation
- Aurora Global Database (boto3 rds): promotion, découverte des endpoints
- Route53 (boto3): enregistrement canonique du primaire
- Kubernetes: ConfigMap applicative et redémarrage des deployments
- Slack / PagerDuty (httpx): notifications opérateurs
- DynamoDB (boto3): bail entre orchestrateurs
"""

from .postgres import PostgresClient, LAG_QUERY
from .aurora import AuroraGlobalClusterAdmin, RdsClusterDirectory, cluster_identifier_for
from .route53 import Route53RecordUpdater
from .configmap import ConfigMapStore, load_kube_config, RESTART_ANNOTATION
from .notifications import SlackWebhookChannel, PagerDutyChannel, PAGERDUTY_EVENTS_URL
from .dynamodb import DynamoDbLeaseLock

__all__ = [
    "PostgresClient",
    "LAG_QUERY",
    "AuroraGlobalClusterAdmin",
    "RdsClusterDirectory",
    "cluster_identifier_for",
    "Route53RecordUpdater",
    "ConfigMapStore",
    "load_kube_config",
    "RESTART_ANNOTATION",
    "SlackWebhookChannel",
    "PagerDutyChannel",
    "PAGERDUTY_EVENTS_URL",
    "DynamoDbLeaseLock",
]
