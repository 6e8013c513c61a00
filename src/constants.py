"""Constants used in the project."""


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration defaults; not intended to provide behavior.
    """

    REGISTRY_URL_MAVEN = "https://repo.maven.apache.org/maven2"
    MAVEN_METADATA_FILE = "maven-metadata.xml"
    MAVEN_POM_NAMESPACE = "{http://maven.apache.org/POM/4.0.0}"
    MAVEN_REGISTRY_CACHE_EXT = ".resolve.maven"
    MAVEN_CACHE_FORMAT = "depresolve-maven-registry-cache"
    MAVEN_CACHE_FORMAT_VERSION = 1
    # Parent chains longer than this are treated as pathological.
    MAX_PARENT_DEPTH = 100
    MAX_INTERPOLATION_DEPTH = 32
    MAX_INTERPOLATED_LENGTH = 64 * 1024
    HTTP_MAX_CONNECTIONS = 100
    USER_AGENT = "depresolve/0.1"

    ENV_CONFIG_PREFIX = "DEPRESOLVE_"
