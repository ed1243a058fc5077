import os
from pathlib import Path
from dotenv import load_dotenv

_ = load_dotenv()

BASE_DIR = Path(__file__).resolve().parent
ARTIFACTS_DIR = os.environ.get("ARTIFACTS_DIR", os.path.join(BASE_DIR, "artifacts"))

NODE_NAME = os.environ.get("NODE_NAME", "local-node")

# ---- Host device (reached through adb) ----
ADB_BIN = os.environ.get("ADB_BIN", "adb")
ANDROID_SERIAL = os.environ.get("ANDROID_SERIAL", "")

# ---- Guest VM ----
# "adb" when the guest is adb-connected, "ssh" when it exposes an SSH port.
GUEST_TRANSPORT = os.environ.get("GUEST_TRANSPORT", "adb").lower()
GUEST_SERIAL = os.environ.get("GUEST_SERIAL", "localhost:8000")
GUEST_SSH_HOST = os.environ.get("GUEST_SSH_HOST", "127.0.0.1")
GUEST_SSH_PORT = int(os.environ.get("GUEST_SSH_PORT", "22"))
GUEST_SSH_USER = os.environ.get("GUEST_SSH_USER", "root")
GUEST_SSH_PRIVKEY = os.environ.get(
    "GUEST_SSH_PRIVKEY", os.path.expanduser("~/.ssh/id_avf_guest")
)

# ---- authfs / fd_server layout ----
TEST_DIR = os.environ.get("AUTHFS_TEST_DIR", "/data/local/tmp/authfs")
TEST_OUTPUT_DIR = os.environ.get(
    "AUTHFS_TEST_OUTPUT_DIR", "/data/local/tmp/authfs/output_dir"
)
MOUNT_DIR = os.environ.get("AUTHFS_MOUNT_DIR", "/data/local/tmp/mnt")
LOG_PATH = TEST_OUTPUT_DIR + "/log.txt"
OPEN_THEN_RUN_BIN = "/data/local/tmp/open_then_run"
FD_SERVER_BIN = "/apex/com.android.virt/bin/fd_server"
AUTHFS_BIN = "/system/bin/authfs"
VMADDR_CID_HOST = 2

# statfs(2) f_type of a FUSE mount, as printed by `stat -f -c '%t'`
FUSE_SUPER_MAGIC_HEX = "65735546"

AUTHFS_INIT_TIMEOUT_S: float = float(os.environ.get("AUTHFS_INIT_TIMEOUT_S", "3"))
POLL_INTERVAL_S: float = float(os.environ.get("POLL_INTERVAL_S", "0.05"))
RELAUNCH_BACKOFF_S: float = float(os.environ.get("RELAUNCH_BACKOFF_S", "0.02"))
SUPERVISOR_WORKERS: int = int(os.environ.get("SUPERVISOR_WORKERS", "2"))
VM_LOG_TAIL_LINES: int = int(os.environ.get("VM_LOG_TAIL_LINES", "50"))

# ---- Compilation OS ----
ODREFRESH_BIN = "/apex/com.android.art/bin/odrefresh"
COMPOSD_CMD_BIN = "/apex/com.android.compos/bin/composd_cmd"
TEST_ARTIFACTS_DIR = "test-artifacts"
ODREFRESH_OUTPUT_DIR = "/data/misc/apexdata/com.android.art/" + TEST_ARTIFACTS_DIR
COMPOS_TEST_ROOT = "/data/misc/apexdata/com.android.compos/test/"
ODREFRESH_TIMEOUT_S: int = int(os.environ.get("ODREFRESH_TIMEOUT_S", str(10 * 60)))

# ---- Benchmarks ----
APEX_ETC_FS = "/apex/com.android.virt/etc/fs/"

# ---- Service ----
REDIS_URL: str = os.environ.get("REDIS_URL", "redis://redis:6379/2")
REDIS_PREFIX: str = os.environ.get("REDIS_PREFIX", "avfharness")

AUTH_TOKEN: str = os.environ.get("AUTH_TOKEN", "")
