"""Default paths, ranges and file modes."""

JAILS_ROOT = "/tank/iocage/jails"
JAILS_DATASET = "tank/iocage/jails"
SNAPSHOT_BACKUP_DIR = "/tank/backups/iocage/jail"

MYSQL_BIN_PATH = "/usr/local/bin/mysql"
MYSQL_SERVICE = "mysql-server"
MYSQL_CONFIG_RELPATH = "usr/local/etc/mysql/my.cnf"
MYSQL_AUTO_CNF = "/var/db/mysql/auto.cnf"
MYSQL_UID = 88
MYSQL_GID = 88

CERT_DIR = "/var/db/mysql/certs"
CA_CERT = "ca.pem"
CLIENT_CERT = "client-cert.pem"
CLIENT_KEY = "client-key.pem"
CERT_FILES = (CA_CERT, CLIENT_CERT, CLIENT_KEY)
REMOTE_CERT_STAGING_DIR = "/tmp/ssl_certs_primary"
LOCAL_CERT_SOURCE_DIR = "/usr/local/share/mysql_certs/primary"
CERT_STAGING_DIR = "/tmp/jailreplica-certs"
CERT_MODE = "600"

NETWORK_INTERFACE = "lo1"
SUBNET_PREFIX = "10.0.0"
DEFAULT_ROUTER = "10.0.0.1"
RELEASE = "14.3-RELEASE"

IP_SUFFIX_RANGE = (2, 253)
SERVER_ID_RANGE = (2, 99)

SNAPSHOT_SUFFIX_FORMAT = "replica_%Y%m%d%H%M%S"
SETTLE_SECONDS = 4.0

LOCK_FILE = "/var/run/jailreplica.lock"
LOCK_TIMEOUT_SECONDS = 600.0
LOCK_POLL_SECONDS = 1.0
