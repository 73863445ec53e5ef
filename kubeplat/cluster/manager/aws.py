import pulumi

from kubeplat.cluster.aws.certificates import create_certificates
from kubeplat.cluster.aws.container_registry import create_container_registries
from kubeplat.cluster.aws.eks import create_k8s_cluster
from kubeplat.cluster.aws.network import create_network
from kubeplat.cluster.aws.object_store import create_object_stores
from kubeplat.cluster.aws.parameter_store import create_parameters
from kubeplat.cluster.aws.security_groups import create_security_groups
from kubeplat.cluster.manager.base import ClusterManager


class AWSClusterManager(ClusterManager):
    """
    AWS-specific implementation of the ClusterManager abstract base class.

    The stack program declares the network first, then the security groups in
    it, the stores and certificates, and finally the EKS cluster with its node
    groups and add-ons. Pulumi derives the creation order from the references
    between resources, and creates independent resources in parallel.
    """

    def provision_k8s(self) -> None:
        create_network(self.ctx)
        create_security_groups(self.ctx)
        registries = create_container_registries(self.ctx)
        buckets = create_object_stores(self.ctx)
        create_parameters(self.ctx)
        certificates = create_certificates(self.ctx)
        cluster = create_k8s_cluster(self.ctx)

        pulumi.export("clusterName", cluster.eks_cluster.name)
        pulumi.export("vpcId", self.ctx.vpc_id)
        pulumi.export("registries", registries)
        pulumi.export("buckets", buckets)
        pulumi.export("certificates", certificates)
