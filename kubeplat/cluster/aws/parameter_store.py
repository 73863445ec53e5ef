import pulumi
import pulumi_aws as aws

from kubeplat.cluster.context import Context
from kubeplat.utils import kubify_name, merge_tags


def create_parameters(ctx: Context) -> None:
    """
    Creates an SSM parameter for every declared parameter.

    SecureString values are encrypted with the account's default KMS key and
    stored as Pulumi secrets in the stack state.
    """
    for parameter in ctx.cloud_config.parameters:
        value = parameter.value
        if parameter.type == "SecureString":
            value = pulumi.Output.secret(value)

        aws.ssm.Parameter(
            f"{ctx.cluster_name}-{kubify_name(parameter.name)}",
            name=parameter.name,
            description=parameter.description,
            type=parameter.type,
            value=value,
            tags=merge_tags(ctx.tags),
        )
