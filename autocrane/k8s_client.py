import logging
from typing import Dict, List, Mapping

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from .detectors import StatusAggregator
from .models import (
    HEALTH_LABEL,
    ForbiddenError,
    PodIdentifier,
    PodInfo,
    PodNotFoundError,
)


def load_kube_config():
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


class KubernetesClient:
    """Thin wrapper over CoreV1Api restricted to the allowed namespaces"""

    def __init__(self, autocrane_config, aggregator: StatusAggregator = None, v1=None):
        self.config = autocrane_config
        self.aggregator = aggregator or StatusAggregator()
        self.v1 = v1 or client.CoreV1Api()
        self.logger = logging.getLogger(__name__)

    def _check_namespace(self, namespace: str):
        if not self.config.is_allowed_namespace(namespace):
            raise ForbiddenError(namespace)

    def _log_response(self, e: ApiException):
        if e.body:
            self.logger.error(f"Exception response content: {e.body}")

    def list_pods(self, namespace: str) -> List[PodInfo]:
        self._check_namespace(namespace)
        pods = self.v1.list_namespaced_pod(namespace)
        result = []
        for pod in pods.items:
            ready = {
                c.name: bool(c.ready)
                for c in (pod.status.container_statuses or [])
            } if pod.status else {}
            result.append(PodInfo(
                id=PodIdentifier(pod.metadata.namespace, pod.metadata.name),
                annotations=dict(pod.metadata.annotations or {}),
                containers_ready=ready,
                pod_ip=(pod.status.pod_ip if pod.status else None) or "",
            ))
        return result

    def get_pod_annotations(self, pod: PodIdentifier) -> Dict[str, str]:
        self._check_namespace(pod.namespace)
        try:
            existing = self.v1.read_namespaced_pod(pod.name, pod.namespace)
        except ApiException as e:
            if e.status == 404:
                raise PodNotFoundError(pod)
            self._log_response(e)
            raise

        annotations = existing.metadata.annotations
        if annotations is None:
            self.logger.debug(f"Pod {pod} has no annotations")
            return {}
        return dict(annotations)

    def put_pod_annotations(self, pod: PodIdentifier, items: Mapping[str, str]):
        """Merge annotations into the pod and refresh its health label"""
        self._check_namespace(pod.namespace)
        try:
            existing = self.v1.read_namespaced_pod(pod.name, pod.namespace)
            annotations = dict(existing.metadata.annotations or {})
            annotations.update(items)
            health = self.aggregator.aggregate(annotations).lower()
            patch = {
                "metadata": {
                    "annotations": dict(items),
                    "labels": {HEALTH_LABEL: health},
                }
            }
            self.v1.patch_namespaced_pod(pod.name, pod.namespace, patch)
            self.logger.info(f"Pod {pod} updated ({len(items)} annotations, health={health})")
        except ApiException as e:
            if e.status == 404:
                raise PodNotFoundError(pod)
            self._log_response(e)
            raise

    def get_failing_pods(self, namespace: str) -> List[PodIdentifier]:
        self._check_namespace(namespace)
        try:
            pods = self.v1.list_namespaced_pod(namespace, label_selector=f"{HEALTH_LABEL}=error")
        except ApiException as e:
            if e.status == 404:
                return []
            self._log_response(e)
            raise
        return [PodIdentifier(namespace, p.metadata.name) for p in pods.items]

    def evict_pod(self, pod: PodIdentifier):
        self._check_namespace(pod.namespace)
        self.logger.info(f"Evicting pod {pod.name} in {pod.namespace}")
        body = client.V1Eviction(
            metadata=client.V1ObjectMeta(name=pod.name, namespace=pod.namespace),
            delete_options=client.V1DeleteOptions(
                grace_period_seconds=self.config.eviction_delete_grace_period_seconds
            ),
        )
        try:
            self.v1.create_namespaced_pod_eviction(pod.name, pod.namespace, body)
        except ApiException as e:
            if e.status == 404:
                return
            self._log_response(e)
            raise

    def get_endpoint_annotations(self, namespace: str, name: str) -> Dict[str, str]:
        self._check_namespace(namespace)
        try:
            endpoints = self.v1.read_namespaced_endpoints(name, namespace)
        except ApiException as e:
            if e.status == 404:
                return {}
            self._log_response(e)
            raise
        return dict(endpoints.metadata.annotations or {})

    def put_endpoint_annotations(self, namespace: str, name: str, items: Mapping[str, str]):
        self._check_namespace(namespace)
        patch = {"metadata": {"annotations": dict(items)}}
        try:
            self.v1.patch_namespaced_endpoints(name, namespace, patch)
        except ApiException as e:
            if e.status != 404:
                self._log_response(e)
                raise
            self.logger.info(f"Creating endpoints {namespace}/{name}")
            body = client.V1Endpoints(
                metadata=client.V1ObjectMeta(name=name, namespace=namespace, annotations=dict(items))
            )
            self.v1.create_namespaced_endpoints(namespace, body)
