# The name of the project
PROJECT_NAME = "kubeplat"

# The environment variable for the directory where the kubeplat data is saved
HOME_ENV_VAR = "KUBEPLAT_HOME"

# The environment variable holding the name of the current cluster
CURRENT_CLUSTER_ENV_VAR = "KUBEPLAT_CURRENT_CLUSTER"

# Pulumi stack name
PULUMI_STACK_NAME = "default"

# Namespaces that always exist in an EKS cluster
BUILTIN_NAMESPACES = ("default", "kube-system")

# Tag applied to every AWS resource created by kubeplat
MANAGED_BY_TAG = {"ManagedBy": "kubeplat"}
