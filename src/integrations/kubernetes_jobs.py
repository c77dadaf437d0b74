"""
Kubernetes implementation of the job platform.

Translates ScanJobSpecs into batch/v1 Jobs and maps API errors onto the
dispatch error hierarchy. The API server's name uniqueness makes
create_namespaced_job the atomic create-if-absent primitive: a conflict
(HTTP 409) is reported as JobAlreadyExistsError. Label values are translated
to the character set the API server accepts on the way out.
"""

import logging
from typing import Optional

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from constants import KUBERNETES_LABEL_VALUE_SUBSTITUTIONS, KUBERNETES_REQUEST_TIMEOUT
from core.exceptions import (
    ConfigurationException,
    JobAlreadyExistsError,
    PlatformCreateError,
    PlatformListError,
)
from core.models import EnvBinding, JobRef, ScanJobSpec
from core.platform_interface import JobPlatform

logger = logging.getLogger(__name__)


def api_label_value(value: str) -> str:
    """Translate a label value into a form the API server accepts."""
    for char, replacement in KUBERNETES_LABEL_VALUE_SUBSTITUTIONS.items():
        value = value.replace(char, replacement)
    return value


def api_label_selector(label_selector: str) -> str:
    """Translate the values of an equality based selector ("k=v,k2=v2")."""
    terms = []
    for term in label_selector.split(","):
        key, sep, value = term.partition("=")
        terms.append(f"{key}{sep}{api_label_value(value)}" if sep else term)
    return ",".join(terms)


def _env_var(binding: EnvBinding) -> client.V1EnvVar:
    if binding.secret_ref is not None:
        return client.V1EnvVar(
            name=binding.name,
            value_from=client.V1EnvVarSource(
                secret_key_ref=client.V1SecretKeySelector(
                    name=binding.secret_ref.name,
                    key=binding.secret_ref.key,
                ),
            ),
        )
    return client.V1EnvVar(name=binding.name, value=binding.value)


def to_v1_job(spec: ScanJobSpec) -> client.V1Job:
    """
    Convert a ScanJobSpec into a Kubernetes Job object.

    Args:
        spec: Job definition

    Returns:
        V1Job ready to be passed to create_namespaced_job
    """
    container = client.V1Container(
        name=spec.container.name,
        image=spec.container.image,
        command=list(spec.container.command),
        args=list(spec.container.args),
        env=[_env_var(binding) for binding in spec.container.env],
    )
    return client.V1Job(
        api_version="batch/v1",
        kind="Job",
        metadata=client.V1ObjectMeta(
            name=spec.name,
            namespace=spec.namespace,
            labels={key: api_label_value(value) for key, value in spec.labels.items()},
        ),
        spec=client.V1JobSpec(
            template=client.V1PodTemplateSpec(
                spec=client.V1PodSpec(
                    restart_policy=spec.restart_policy,
                    containers=[container],
                ),
            ),
        ),
    )


class KubernetesJobPlatform(JobPlatform):
    """
    Job platform backed by the Kubernetes batch/v1 API.
    """

    def __init__(
        self,
        batch_api: Optional[client.BatchV1Api] = None,
        request_timeout: float = KUBERNETES_REQUEST_TIMEOUT,
    ):
        """
        Initialize Kubernetes job platform.

        Args:
            batch_api: Configured BatchV1Api, a default one is created if None
            request_timeout: Upper bound for a single API request in seconds
        """
        self.batch_api = batch_api or client.BatchV1Api()
        self.request_timeout = request_timeout

    @classmethod
    def from_environment(cls, request_timeout: float = KUBERNETES_REQUEST_TIMEOUT) -> "KubernetesJobPlatform":
        """
        Load in-cluster configuration, falling back to the kubeconfig.

        Raises:
            ConfigurationException: If neither is available
        """
        try:
            config.load_incluster_config()
            logger.debug("Using in-cluster Kubernetes configuration")
        except ConfigException:
            try:
                config.load_kube_config()
                logger.debug("Using kubeconfig Kubernetes configuration")
            except ConfigException as e:
                raise ConfigurationException(f"No Kubernetes configuration found: {e}") from e
        return cls(client.BatchV1Api(), request_timeout=request_timeout)

    def _timeout(self, timeout: Optional[float]) -> float:
        if timeout is None:
            return self.request_timeout
        return min(timeout, self.request_timeout)

    def list_jobs(
        self,
        namespace: str,
        label_selector: str,
        timeout: Optional[float] = None,
    ) -> list[JobRef]:
        """
        List jobs matching a label selector.

        Raises:
            PlatformListError: On API or connection errors
        """
        try:
            job_list = self.batch_api.list_namespaced_job(
                namespace,
                label_selector=api_label_selector(label_selector),
                _request_timeout=self._timeout(timeout),
            )
        except ApiException as e:
            raise PlatformListError(label_selector, e.reason or str(e), e.status)
        except urllib3.exceptions.HTTPError as e:
            raise PlatformListError(label_selector, str(e))

        return [
            JobRef(
                name=job.metadata.name,
                namespace=job.metadata.namespace or namespace,
                labels=dict(job.metadata.labels or {}),
            )
            for job in job_list.items
        ]

    def create_job(
        self,
        namespace: str,
        spec: ScanJobSpec,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Create the job.

        Raises:
            JobAlreadyExistsError: If the API server reports a name conflict
            PlatformCreateError: On any other API or connection error
        """
        try:
            self.batch_api.create_namespaced_job(
                namespace,
                to_v1_job(spec),
                _request_timeout=self._timeout(timeout),
            )
        except ApiException as e:
            if e.status == 409:
                raise JobAlreadyExistsError(spec.name)
            raise PlatformCreateError(spec.name, e.reason or str(e), e.status)
        except urllib3.exceptions.HTTPError as e:
            raise PlatformCreateError(spec.name, str(e))


__all__ = ["KubernetesJobPlatform", "api_label_selector", "api_label_value", "to_v1_job"]
