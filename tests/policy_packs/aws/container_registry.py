from typing import List

from pulumi_policy import (
    Policy,
    ReportViolation,
    ResourceValidationArgs,
    ResourceValidationPolicy,
)

ECR_REPOSITORY = "aws:ecr/repository:Repository"


def ecr_scan_on_push_validator(
    args: ResourceValidationArgs, report_violation: ReportViolation
) -> None:
    if args.resource_type == ECR_REPOSITORY:
        scanning = args.props.get("imageScanningConfiguration") or {}
        if not scanning.get("scanOnPush"):
            report_violation(
                "Image scanning on push should be enabled for ECR repositories.",
                None,
            )


ecr_scan_on_push = ResourceValidationPolicy(
    name="ecr-scan-on-push",
    description="Requires images to be scanned when they are pushed.",
    validate=ecr_scan_on_push_validator,
)


def ecr_managed_by_validator(
    args: ResourceValidationArgs, report_violation: ReportViolation
) -> None:
    if args.resource_type == ECR_REPOSITORY:
        tags = args.props.get("tags") or {}
        if tags.get("ManagedBy") != "kubeplat":
            report_violation("ECR repositories must carry the ManagedBy tag.", None)


ecr_managed_by = ResourceValidationPolicy(
    name="ecr-managed-by",
    description="Requires the ManagedBy tag on ECR repositories.",
    validate=ecr_managed_by_validator,
)

ecr_policies: List[Policy] = [ecr_scan_on_push, ecr_managed_by]
