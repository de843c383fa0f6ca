"""fsim-upload 项目使用的常量定义。"""

MODULE_NAME = "fdo.upload"

# 入站消息名
MSG_ACTIVE = "active"
MSG_LENGTH = "length"
MSG_DATA = "data"
MSG_SHA384 = "sha-384"

# 出站消息名
MSG_NEED_SHA = "need-sha"
MSG_NAME = "name"

SHA384_SIZE = 48
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

BACKUP_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S.%f"
DEFAULT_STAGING_PREFIX = "fdo.upload_"
DEFAULT_COPY_CHUNK_KB = 1024
DEFAULT_CONFIG_FILE = "config.yaml"
DEFAULT_AUDIT_DIR = "logs/uploads"
