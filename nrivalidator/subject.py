"""Attribution of a validation request to a subject.

The identity behind a pod is not part of the NRI request, so it is expected
in pod annotations set by an admission controller. A user annotation takes
precedence over a group annotation, which takes precedence over the service
account annotation. Pods carrying none of them are attributed to the
"default" service account.
"""

from typing import Any, Mapping, Optional

from nrivalidator.common.exception import SubjectExtractionError
from nrivalidator.types import PodSandbox
from nrivalidator.validation.rules import PolicySubject, SubjectKind

USER_ANNOTATION = "nri.io/user"
GROUP_ANNOTATION = "nri.io/group"
SERVICE_ACCOUNT_ANNOTATION = "nri.io/service-account"

DEFAULT_SERVICE_ACCOUNT = "default"


def extract_subject(pod: Optional[PodSandbox]) -> PolicySubject:
    """Extract the subject of a request from the pod annotations.

    Raises:
        SubjectExtractionError: If there is no pod or its annotations are not a mapping
    """
    if pod is None:
        raise SubjectExtractionError("no pod information available")

    annotations: Any = pod.get("annotations")
    if annotations is None:
        annotations = {}
    if not isinstance(annotations, Mapping):
        raise SubjectExtractionError(f"annotations of pod {pod.get('name', '')} are not a mapping")

    if USER_ANNOTATION in annotations:
        return PolicySubject(kind=SubjectKind.USER, name=str(annotations[USER_ANNOTATION]))

    if GROUP_ANNOTATION in annotations:
        return PolicySubject(kind=SubjectKind.GROUP, name=str(annotations[GROUP_ANNOTATION]))

    return PolicySubject(
        kind=SubjectKind.SERVICE_ACCOUNT,
        name=str(annotations.get(SERVICE_ACCOUNT_ANNOTATION, DEFAULT_SERVICE_ACCOUNT)),
    )
