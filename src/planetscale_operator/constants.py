"""Constants for the PlanetScale Operator."""

# API Groups
API_VERSION = "v1alpha1"
PROVIDER_GROUP = "planetscale.crossplane.io"
DATABASE_GROUP = f"database.{PROVIDER_GROUP}"
BRANCH_GROUP = f"branch.{PROVIDER_GROUP}"

PROVIDER_GROUP_VERSION = f"{PROVIDER_GROUP}/{API_VERSION}"
DATABASE_GROUP_VERSION = f"{DATABASE_GROUP}/{API_VERSION}"
BRANCH_GROUP_VERSION = f"{BRANCH_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_DATABASE = "Database"
KIND_PASSWORD = "Password"
KIND_PROVIDER_CONFIG = "ProviderConfig"
KIND_PROVIDER_CONFIG_USAGE = "ProviderConfigUsage"

# Plurals
PLURAL_DATABASES = "databases"
PLURAL_PASSWORDS = "passwords"
PLURAL_PROVIDER_CONFIGS = "providerconfigs"
PLURAL_PROVIDER_CONFIG_USAGES = "providerconfigusages"

# Labels
LABEL_PROVIDER_CONFIG = f"{PROVIDER_GROUP}/provider-config"

# Annotations
ANNOTATION_EXTERNAL_NAME = "crossplane.io/external-name"

# Finalizers
FINALIZER = "finalizer.managedresource.crossplane.io"

# Field Manager
FIELD_MANAGER = "planetscale-operator"
CONTROLLER_NAME = "planetscale-operator"

# Defaults
DEFAULT_PROVIDER_CONFIG = "default"
DEFAULT_API_URL = "https://api.planetscale.com/v1"
DEFAULT_PASSWORD_ROLE = "admin"

# Deletion policies
DELETION_POLICY_DELETE = "Delete"
DELETION_POLICY_ORPHAN = "Orphan"

# Credential sources
CREDENTIALS_SOURCE_SECRET = "Secret"
CREDENTIALS_SOURCE_ENVIRONMENT = "Environment"
CREDENTIALS_SOURCE_FILESYSTEM = "Filesystem"

# Condition Types
COND_READY = "Ready"
COND_SYNCED = "Synced"

# Condition Reasons
REASON_AVAILABLE = "Available"
REASON_UNAVAILABLE = "Unavailable"
REASON_CREATING = "Creating"
REASON_DELETING = "Deleting"
REASON_RECONCILE_SUCCESS = "ReconcileSuccess"
REASON_CONNECT_ERROR = "ConnectError"
REASON_OBSERVE_ERROR = "ObserveError"
REASON_CREATE_ERROR = "CreateError"
REASON_UPDATE_ERROR = "UpdateError"
REASON_DELETE_ERROR = "DeleteError"
REASON_TYPE_MISMATCH = "TypeMismatch"
REASON_EXTERNAL_RESOURCE_LOST = "ExternalResourceLost"

# Event Reasons
EVENT_REASON_CREATED = "CreatedExternalResource"
EVENT_REASON_DELETED = "DeletedExternalResource"
EVENT_REASON_CANNOT_CONNECT = "CannotConnectToProvider"
EVENT_REASON_CANNOT_OBSERVE = "CannotObserveExternalResource"
EVENT_REASON_CANNOT_CREATE = "CannotCreateExternalResource"
EVENT_REASON_CANNOT_UPDATE = "CannotUpdateExternalResource"
EVENT_REASON_CANNOT_DELETE = "CannotDeleteExternalResource"
