from __future__ import annotations

import ipaddress
import re
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from ruamel.yaml import YAML

from kubeplat.constants import BUILTIN_NAMESPACES
from kubeplat.utils import to_yaml

CONFIG_VERSION = "1.0"

CAPACITY_TYPES = ("ON_DEMAND", "SPOT")
VOLUME_TYPES = ("gp2", "gp3", "io1", "io2")
PARAMETER_TYPES = ("String", "StringList", "SecureString")
NAT_GATEWAY_STRATEGIES = ("None", "Single", "OnePerAz")
TAINT_EFFECTS = ("NO_SCHEDULE", "NO_EXECUTE", "PREFER_NO_SCHEDULE")


class KubeplatBaseModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


def validate_one_of(v: str, options: Iterable[str], field_name: str) -> str:
    """
    Validates that a value is one of a fixed set of options.

    Args:
        v (str): The value to check.
        options (Iterable[str]): The allowed values.
        field_name (str): The field name used in the error message.

    Returns:
        str: The input value if validation is successful.

    Raises:
        ValueError: If the value is not one of the options.
    """
    options = tuple(options)
    if v not in options:
        raise ValueError(f"{field_name} must be one of {', '.join(options)}")
    return v


def validate_non_empty(v: str, field_name: str) -> str:
    if not isinstance(v, str) or not v.strip():
        raise ValueError(f"{field_name} must be a non-empty string")
    return v


def check_unique_names(kind: str, names: Iterable[str]) -> None:
    seen = set()
    for name in names:
        if name in seen:
            raise ValueError(f"Duplicate {kind} name: {name}")
        seen.add(name)


class NamedEntry(KubeplatBaseModel):
    """
    An entry of a name list. Every entry carries a name and a description.
    """

    name: str = Field(..., description="The name of the resource.")
    description: str = Field(..., description="What the resource is used for.")

    @field_validator("name", mode="before")
    def validate_name(cls, v: str) -> str:
        return validate_non_empty(v, "name")

    @field_validator("description", mode="before")
    def validate_description(cls, v: str) -> str:
        return validate_non_empty(v, "description")


class ClusterConfig(KubeplatBaseModel):
    """
    Represents the configuration for the EKS control plane.
    """

    name: str = Field(..., description="The name of the cluster.")
    region: str = Field(..., description="The AWS region for the cluster.")
    version: Optional[str] = Field(
        None,
        description="The Kubernetes version of the control plane. If None, EKS picks its default.",
    )
    logRetentionDays: int = Field(
        14, description="The number of days to retain control plane log entries."
    )
    enabledLogTypes: List[str] = Field(
        ["api", "audit", "authenticator"],
        description="The control plane log types shipped to CloudWatch.",
    )
    publicAccessCidrs: List[str] = Field(
        ["0.0.0.0/0"],
        description="The CIDR blocks allowed to reach the public API endpoint.",
    )
    tags: Dict[str, str] = Field(
        {}, description="Tags applied to all AWS resources of the cluster."
    )

    @field_validator("name", mode="before")
    def validate_name(cls, v: str) -> str:
        if not isinstance(v, str) or not re.match(
            r"^[a-zA-Z][-a-zA-Z0-9]{0,99}$", v
        ):
            raise ValueError(
                "Invalid cluster name. It must start with a letter and contain only "
                "alphanumeric characters or '-', up to 100 characters."
            )
        return v

    @field_validator("version", mode="before")
    def validate_version(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not re.match(r"^\d+\.\d+$", str(v)):
            raise ValueError('Kubernetes version must be in the format "x.y"')
        return v if v is None else str(v)

    @field_validator("logRetentionDays", mode="after")
    def validate_log_retention_days(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("logRetentionDays must be greater than 0")
        return v

    @field_validator("publicAccessCidrs", mode="after")
    def validate_public_access_cidrs(cls, v: List[str]) -> List[str]:
        for cidr in v:
            validate_cidr(cidr)
        return v


def validate_cidr(v: str) -> str:
    try:
        ipaddress.ip_network(v, strict=True)
    except ValueError:
        raise ValueError(f"Invalid CIDR block: {v}")
    return v


class NetworkConfig(KubeplatBaseModel):
    """
    Represents the VPC of the cluster. Either a new VPC is created or an existing one is used.
    """

    create: bool = Field(True, description="Whether to create a new VPC.")
    cidr: str = Field("10.0.0.0/16", description="The CIDR block of the new VPC.")
    availabilityZoneCount: int = Field(
        2, description="The number of availability zones to spread subnets over."
    )
    natGateways: str = Field(
        "Single",
        description="The NAT gateway strategy for private subnets: None, Single or OnePerAz.",
    )
    vpcId: Optional[str] = Field(
        None, description="The id of an existing VPC. Required when create is false."
    )
    publicSubnetIds: List[str] = Field(
        [], description="The ids of existing public subnets."
    )
    privateSubnetIds: List[str] = Field(
        [], description="The ids of existing private subnets."
    )

    @field_validator("cidr", mode="after")
    def validate_cidr(cls, v: str) -> str:
        return validate_cidr(v)

    @field_validator("natGateways", mode="before")
    def validate_nat_gateways(cls, v: str) -> str:
        return validate_one_of(v, NAT_GATEWAY_STRATEGIES, "natGateways")

    @field_validator("availabilityZoneCount", mode="after")
    def validate_availability_zone_count(cls, v: int) -> int:
        # EKS requires subnets in at least two availability zones
        if v < 2:
            raise ValueError("availabilityZoneCount must be at least 2")
        return v

    @model_validator(mode="after")
    def check_existing_network(self) -> NetworkConfig:
        if self.create:
            return self
        if not self.vpcId:
            raise ValueError("vpcId must be provided when network.create is false")
        if not self.privateSubnetIds:
            raise ValueError(
                "privateSubnetIds must not be empty when network.create is false"
            )
        return self


class SecurityGroupRule(KubeplatBaseModel):
    """
    A single ingress or egress rule. The peer is either a list of CIDR blocks
    or another security group referenced by name.
    """

    protocol: str = Field("tcp", description="tcp, udp, icmp or -1 for all.")
    fromPort: int = Field(..., description="The start of the port range.")
    toPort: int = Field(..., description="The end of the port range.")
    cidrBlocks: List[str] = Field([], description="The peer CIDR blocks.")
    sourceSecurityGroup: Optional[str] = Field(
        None, description="The name of the peer security group."
    )
    description: Optional[str] = Field(None, description="The rule description.")

    @field_validator("cidrBlocks", mode="after")
    def validate_cidr_blocks(cls, v: List[str]) -> List[str]:
        for cidr in v:
            validate_cidr(cidr)
        return v

    @model_validator(mode="after")
    def check_rule(self) -> SecurityGroupRule:
        all_ports = self.protocol == "-1"
        for port in (self.fromPort, self.toPort):
            if not (0 <= port <= 65535 or (all_ports and port == -1)):
                raise ValueError(f"Invalid port: {port}")
        if self.fromPort > self.toPort:
            raise ValueError("fromPort must be less than or equal to toPort")
        if bool(self.cidrBlocks) == bool(self.sourceSecurityGroup):
            raise ValueError(
                "Exactly one of cidrBlocks or sourceSecurityGroup must be provided"
            )
        return self


class SecurityGroup(NamedEntry):
    ingress: List[SecurityGroupRule] = Field([], description="The ingress rules.")
    egress: List[SecurityGroupRule] = Field(
        [
            SecurityGroupRule(
                protocol="-1", fromPort=0, toPort=0, cidrBlocks=["0.0.0.0/0"]
            )
        ],
        description="The egress rules. Defaults to allowing all outbound traffic.",
    )


class SecurityGroupsConfig(KubeplatBaseModel):
    create: bool = Field(True, description="Whether to create the declared groups.")
    groups: List[SecurityGroup] = Field([], description="The groups to create.")
    existingIds: Dict[str, str] = Field(
        {},
        description="Existing security groups by name. Required when create is false.",
    )

    @model_validator(mode="after")
    def check_groups(self) -> SecurityGroupsConfig:
        if not self.create and not self.existingIds:
            raise ValueError(
                "existingIds must not be empty when securityGroups.create is false"
            )

        check_unique_names("security group", (g.name for g in self.groups))
        # a created group must not shadow an existing one
        check_unique_names("security group", self.names)

        known = self.names
        for group in self.groups:
            for rule in group.ingress + group.egress:
                if rule.sourceSecurityGroup and rule.sourceSecurityGroup not in known:
                    raise ValueError(
                        f"Security group {group.name} references unknown security group "
                        f"{rule.sourceSecurityGroup}"
                    )
        return self

    @property
    def names(self) -> List[str]:
        names = list(self.existingIds)
        if self.create:
            names.extend(g.name for g in self.groups)
        return names


class Taint(KubeplatBaseModel):
    key: str = Field(..., description="The taint key.")
    value: Optional[str] = Field(None, description="The taint value.")
    effect: str = Field("NO_SCHEDULE", description="The taint effect.")

    @field_validator("effect", mode="before")
    def validate_effect(cls, v: str) -> str:
        return validate_one_of(v, TAINT_EFFECTS, "effect")


class NodeGroup(KubeplatBaseModel):
    """
    Represents a managed node group of the cluster.
    """

    name: str = Field(..., description="The name of the node group.")
    instanceTypes: List[str] = Field(
        ..., description="The EC2 instance types of the nodes."
    )
    capacityType: str = Field("ON_DEMAND", description="ON_DEMAND or SPOT.")
    amiType: Optional[str] = Field(
        None, description="The EKS AMI type. If None, EKS picks its default."
    )
    minSize: int = Field(1, description="The minimum number of nodes.")
    maxSize: int = Field(1, description="The maximum number of nodes.")
    desiredSize: Optional[int] = Field(
        None, description="The initial number of nodes. Defaults to minSize."
    )
    diskSize: int = Field(20, description="The size of the root volume in GB.")
    volumeType: str = Field("gp3", description="The EBS type of the root volume.")
    labels: Dict[str, str] = Field({}, description="Kubernetes node labels.")
    taints: List[Taint] = Field([], description="Kubernetes node taints.")
    securityGroups: List[str] = Field(
        [], description="Names of extra security groups attached to the nodes."
    )

    @field_validator("name", mode="before")
    def validate_name(cls, v: str) -> str:
        return validate_non_empty(v, "name")

    @field_validator("instanceTypes", mode="before")
    def validate_instance_types(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("instanceTypes must not be empty")
        return v

    @field_validator("capacityType", mode="before")
    def validate_capacity_type(cls, v: str) -> str:
        return validate_one_of(v, CAPACITY_TYPES, "capacityType")

    @field_validator("volumeType", mode="before")
    def validate_volume_type(cls, v: str) -> str:
        return validate_one_of(v, VOLUME_TYPES, "volumeType")

    @field_validator("diskSize", mode="after")
    def validate_disk_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("diskSize must be greater than 0")
        return v

    @model_validator(mode="after")
    def check_sizes(self) -> NodeGroup:
        if self.minSize < 0:
            raise ValueError("minSize must be greater than or equal to 0")
        if self.maxSize < 1:
            raise ValueError("maxSize must be greater than 0")
        if self.maxSize < self.minSize:
            raise ValueError("maxSize must be greater than or equal to minSize")
        if self.desiredSize is not None and not (
            self.minSize <= self.desiredSize <= self.maxSize
        ):
            raise ValueError("desiredSize must be between minSize and maxSize")
        return self

    @property
    def desired(self) -> int:
        return self.minSize if self.desiredSize is None else self.desiredSize


class ContainerRegistry(NamedEntry):
    imageTagMutability: str = Field("MUTABLE", description="MUTABLE or IMMUTABLE.")
    scanOnPush: bool = Field(True, description="Whether to scan images on push.")
    forceDelete: bool = Field(
        False, description="Whether to delete the repository even if it has images."
    )

    @field_validator("imageTagMutability", mode="before")
    def validate_image_tag_mutability(cls, v: str) -> str:
        return validate_one_of(v, ("MUTABLE", "IMMUTABLE"), "imageTagMutability")


class ObjectStore(NamedEntry):
    versioning: bool = Field(True, description="Whether to enable versioning.")
    forceDestroy: bool = Field(
        False, description="Whether to delete the bucket even if it is not empty."
    )

    @field_validator("name", mode="before")
    def validate_name(cls, v: str) -> str:
        validate_non_empty(v, "name")
        if not re.match(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$", v):
            raise ValueError(f"Invalid bucket name: {v}")
        return v


class Parameter(NamedEntry):
    type: str = Field("String", description="String, StringList or SecureString.")
    value: str = Field(..., description="The parameter value.")

    @field_validator("type", mode="before")
    def validate_type(cls, v: str) -> str:
        return validate_one_of(v, PARAMETER_TYPES, "type")


class Certificate(KubeplatBaseModel):
    domainName: str = Field(..., description="The primary domain of the certificate.")
    subjectAlternativeNames: List[str] = Field(
        [], description="Additional domains of the certificate."
    )
    zoneId: Optional[str] = Field(
        None,
        description="The Route53 hosted zone used for DNS validation. If None, validation records are left to the user.",
    )

    @field_validator("domainName", mode="before")
    def validate_domain_name(cls, v: str) -> str:
        return validate_non_empty(v, "domainName")


class Namespace(NamedEntry):
    labels: Dict[str, str] = Field({}, description="Kubernetes namespace labels.")

    @field_validator("name", mode="before")
    def validate_name(cls, v: str) -> str:
        validate_non_empty(v, "name")
        if not re.match(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$", v) or len(v) > 63:
            raise ValueError(f"Invalid namespace name: {v}")
        return v


class PolicyStatement(KubeplatBaseModel):
    effect: str = Field("Allow", description="Allow or Deny.")
    actions: List[str] = Field(..., description="The IAM actions.")
    resources: List[str] = Field(["*"], description="The resource ARNs.")

    @field_validator("effect", mode="before")
    def validate_effect(cls, v: str) -> str:
        return validate_one_of(v, ("Allow", "Deny"), "effect")

    @field_validator("actions", mode="before")
    def validate_actions(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("actions must not be empty")
        return v


class ServiceAccount(NamedEntry):
    """
    A Kubernetes service account bound to an IAM role through the cluster OIDC provider.
    """

    namespace: str = Field("default", description="The namespace of the account.")
    policyArns: List[str] = Field([], description="Managed policies to attach.")
    statements: List[PolicyStatement] = Field(
        [], description="Statements of an inline policy attached to the role."
    )


class AddonConfig(KubeplatBaseModel):
    enabled: bool = Field(True, description="Whether the add-on is installed.")
    version: Optional[str] = Field(
        None, description="The Helm chart version. If None, the pinned default is used."
    )
    values: Dict[str, Any] = Field(
        {}, description="Extra Helm values merged over the defaults."
    )


class ArgoCDConfig(AddonConfig):
    enabled: bool = Field(False, description="Whether ArgoCD is installed.")
    namespace: str = Field("argocd", description="The namespace ArgoCD runs in.")


class AddonsConfig(KubeplatBaseModel):
    metricsServer: AddonConfig = Field(AddonConfig(), description="Metrics server.")
    clusterAutoscaler: AddonConfig = Field(
        AddonConfig(), description="Cluster autoscaler."
    )
    loadBalancerController: AddonConfig = Field(
        AddonConfig(), description="AWS load balancer controller."
    )
    argocd: ArgoCDConfig = Field(ArgoCDConfig(), description="ArgoCD.")


class AwsConfig(KubeplatBaseModel):
    """
    Represents the AWS platform: network, cluster, node groups, storage and add-ons.
    """

    cluster: ClusterConfig = Field(..., description="The EKS control plane.")
    network: NetworkConfig = Field(NetworkConfig(), description="The VPC.")
    securityGroups: SecurityGroupsConfig = Field(
        SecurityGroupsConfig(), description="Extra security groups."
    )
    nodeGroups: List[NodeGroup] = Field(..., description="The managed node groups.")
    containerRegistries: List[ContainerRegistry] = Field(
        [], description="The ECR repositories."
    )
    objectStores: List[ObjectStore] = Field([], description="The S3 buckets.")
    parameters: List[Parameter] = Field([], description="The SSM parameters.")
    certificates: List[Certificate] = Field([], description="The ACM certificates.")
    namespaces: List[Namespace] = Field([], description="The Kubernetes namespaces.")
    serviceAccounts: List[ServiceAccount] = Field(
        [], description="The IRSA bound service accounts."
    )
    addons: AddonsConfig = Field(AddonsConfig(), description="The cluster add-ons.")

    @field_validator("nodeGroups", mode="after")
    def validate_node_groups(cls, v: List[NodeGroup]) -> List[NodeGroup]:
        if not v:
            raise ValueError("nodeGroups must not be empty")
        return v

    @model_validator(mode="after")
    def check_references(self) -> AwsConfig:
        check_unique_names("node group", (ng.name for ng in self.nodeGroups))
        check_unique_names(
            "container registry", (r.name for r in self.containerRegistries)
        )
        check_unique_names("object store", (o.name for o in self.objectStores))
        check_unique_names("parameter", (p.name for p in self.parameters))
        check_unique_names("namespace", (n.name for n in self.namespaces))
        check_unique_names(
            "service account",
            (f"{sa.namespace}/{sa.name}" for sa in self.serviceAccounts),
        )

        security_groups = set(self.securityGroups.names)
        for node_group in self.nodeGroups:
            for name in node_group.securityGroups:
                if name not in security_groups:
                    raise ValueError(
                        f"Node group {node_group.name} references unknown security group {name}"
                    )

        for ns in self.namespaces:
            if ns.name in BUILTIN_NAMESPACES:
                raise ValueError(f"Namespace {ns.name} already exists in the cluster")

        argocd = self.addons.argocd
        if argocd.enabled and argocd.namespace in (n.name for n in self.namespaces):
            raise ValueError(
                f"Namespace {argocd.namespace} is created by the ArgoCD add-on and must not be declared"
            )
        if argocd.enabled and argocd.namespace in BUILTIN_NAMESPACES:
            raise ValueError(f"ArgoCD cannot be installed into {argocd.namespace}")

        namespaces = set(self.namespace_names)
        for sa in self.serviceAccounts:
            if sa.namespace not in namespaces:
                raise ValueError(
                    f"Service account {sa.name} references unknown namespace {sa.namespace}"
                )
        return self

    @property
    def namespace_names(self) -> List[str]:
        names = list(BUILTIN_NAMESPACES)
        names.extend(n.name for n in self.namespaces)
        if self.addons.argocd.enabled:
            names.append(self.addons.argocd.namespace)
        return names


class Config(KubeplatBaseModel):
    """
    The cluster config file.
    """

    version: str = Field(..., description="The version of the configuration.")
    aws: Optional[AwsConfig] = Field(None, description="The AWS configuration.")

    @model_validator(mode="before")
    def check_one_field(cls, values: Dict[str, Any]) -> Dict[str, Any]:
        if "aws" not in values or values["aws"] is None:
            raise ValueError("Exactly one cloud configuration must be provided")
        return values

    @field_validator("version", mode="before")
    def validate_version(cls, v: str) -> str:
        if not re.match(r"^\d+\.\d+$", str(v)):
            raise ValueError('version must be in the format "x.x"')
        return str(v)


def generate_yaml(config: Config) -> str:
    """
    Generate a YAML string representation of the given config object.

    Args:
        config (Config): The config object to generate YAML from.

    Returns:
        str: The YAML string representation of the config object.
    """
    return to_yaml(config.model_dump(exclude_none=True))


def parse_yaml(yaml_str: str) -> Config:
    """
    Parse a YAML string and return a validated Config object.

    Args:
        yaml_str (str): The YAML string to parse.

    Returns:
        Config: The parsed Config object.

    Raises:
        ValueError: If the version is missing or incompatible, or if any validation rule fails.
    """
    yaml = YAML(typ="safe")
    data = yaml.load(yaml_str)
    if not isinstance(data, dict):
        raise ValueError("Invalid configuration: expected a mapping at the top level.")

    version = data.get("version", None)
    if version is None:
        raise ValueError("Invalid configuration: The 'version' field is missing.")

    version = str(version)
    if not re.match(r"^\d+\.\d+$", version):
        raise ValueError('version must be in the format "x.x"')

    major_version, minor_version = map(int, version.split("."))
    tool_major_version, tool_minor_version = map(int, CONFIG_VERSION.split("."))

    if major_version < tool_major_version:
        raise ValueError(
            f"Invalid configuration: This tool supports versions starting from {tool_major_version}.0."
            " Please use an older version of the tool if you need to work with a previous configuration version."
        )
    elif major_version > tool_major_version:
        raise ValueError(
            "Invalid configuration: Your current tool is too old. Please upgrade your tool to handle this configuration."
        )
    elif minor_version > tool_minor_version:  # No forward compatibility
        raise ValueError(
            f"Invalid configuration: This tool supports versions up to {tool_major_version}.{tool_minor_version}."
            " Please upgrade your tool to handle this configuration."
        )

    data["version"] = version
    return Config(**data)
