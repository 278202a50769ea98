"""
Kubernetes ConfigMap Store

Publie le primaire dans la ConfigMap lue par les applications
(PRIMARY_REGION, PRIMARY_ENDPOINT) puis redémarre les deployments du
namespace pour qu'ils relisent la configuration (équivalent de
`kubectl rollout restart`: annotation restartedAt sur le pod template).
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, List, Optional

from kubernetes import client, config

from dbfailover.ha.interfaces import Endpoint, IAppConfigStore

RESTART_ANNOTATION = "kubectl.kubernetes.io/restartedAt"


def load_kube_config(in_cluster: bool = False) -> None:
    if in_cluster:
        config.load_incluster_config()
    else:
        config.load_kube_config()


class ConfigMapStore(IAppConfigStore):
    """
    Example:
        load_kube_config(in_cluster=True)
        store = ConfigMapStore(namespace="default", configmap="database-config")
    """

    def __init__(
        self,
        namespace: str = "default",
        configmap: str = "database-config",
        restart_deployments: bool = True,
        label_selector: Optional[str] = None,
        core_api: Optional[Any] = None,
        apps_api: Optional[Any] = None,
    ) -> None:
        """
        Args:
            namespace: Namespace des applications
            configmap: ConfigMap portant l'endpoint du primaire
            restart_deployments: Redémarrer les deployments après patch
            label_selector: Restreint les deployments redémarrés
            core_api: CoreV1Api (tests)
            apps_api: AppsV1Api (tests)
        """
        self._namespace = namespace
        self._configmap = configmap
        self._restart = restart_deployments
        self._selector = label_selector
        self._core = core_api or client.CoreV1Api()
        self._apps = apps_api or client.AppsV1Api()

    async def publish_primary(self, region_id: str, endpoint: Endpoint) -> None:
        await asyncio.to_thread(self._patch_configmap, region_id, endpoint)
        if self._restart:
            await asyncio.to_thread(self._restart_deployments)

    def _patch_configmap(self, region_id: str, endpoint: Endpoint) -> None:
        body = {
            "data": {
                "PRIMARY_REGION": region_id,
                "PRIMARY_ENDPOINT": endpoint.host,
                "PRIMARY_PORT": str(endpoint.port),
            }
        }
        self._core.patch_namespaced_config_map(self._configmap, self._namespace, body)

    def _restart_deployments(self) -> List[str]:
        kwargs = {"label_selector": self._selector} if self._selector else {}
        deployments = self._apps.list_namespaced_deployment(self._namespace, **kwargs)
        restarted_at = datetime.now(timezone.utc).isoformat()
        body = {"spec": {"template": {"metadata": {"annotations": {RESTART_ANNOTATION: restarted_at}}}}}

        names = []
        for deployment in deployments.items:
            name = deployment.metadata.name
            self._apps.patch_namespaced_deployment(name, self._namespace, body)
            names.append(name)
        return names
