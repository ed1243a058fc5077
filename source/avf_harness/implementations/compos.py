from __future__ import annotations

import time

import settings
from models import CommandError, CommandResult, ComposComparisonOut
from shell import CommandRunner

from .compilation import OdrefreshExitCode

SYSTEM_SERVER_COMPILER_FILTER_PROP_NAME = "dalvik.vm.systemservercompilerfilter"


class ComposWorkflow:
    """
    Compiles boot artifacts locally and in the compilation VM, and compares them.
    Paths are the same on the host and in the VM.
    """

    def __init__(self, shell: CommandRunner, timeout: float | None = None) -> None:
        self.shell = shell
        self.timeout = timeout or settings.ODREFRESH_TIMEOUT_S
        self._backup_compiler_filter: str | None = None

    def run_odrefresh(self, command: str) -> CommandResult:
        return self.shell.run_with_timeout(
            self.timeout,
            settings.ODREFRESH_BIN,
            f"--dalvik-cache={settings.TEST_ARTIFACTS_DIR}",
            command,
        )

    def checksum_directory_content_partial(self, path: str) -> str:
        # compos.info{,.signature} only exist after a CompOS run.
        # TODO: drop the cache-info.xml filter once APEX timestamps reach the VM.
        return self.shell.run(
            f"cd {path}; find -type f -exec sha256sum {{}} \\;"
            " | grep -v cache-info.xml | grep -v compos.info"
            " | sort -k2"
        )

    def _reconnect(self) -> None:
        reconnect = getattr(self.shell, "reconnect", None)
        if reconnect is not None:
            reconnect()

    def kill_vm_and_reconnect_adb(self) -> None:
        # adb tends to disconnect when a VM exits.
        self._reconnect()
        self.shell.try_run("killall", "crosvm")
        self._reconnect()
        self.shell.try_run("stop", "virtualizationservice")
        self._reconnect()
        self.shell.try_run("rm", "-rf", "/data/misc/virtualizationservice/*")

    def get_compiler_filter(self) -> str:
        return self.shell.try_run("getprop", SYSTEM_SERVER_COMPILER_FILTER_PROP_NAME)

    def set_compiler_filter(self, value: str) -> None:
        self.shell.run(
            "setprop", SYSTEM_SERVER_COMPILER_FILTER_PROP_NAME, f"'{value}'"
        )

    def backup_compiler_filter(self) -> str:
        self._backup_compiler_filter = self.get_compiler_filter()
        return self._backup_compiler_filter

    def restore_compiler_filter(self) -> None:
        if self._backup_compiler_filter is None:
            return
        print(f"Restore {SYSTEM_SERVER_COMPILER_FILTER_PROP_NAME} to {self._backup_compiler_filter!r}")
        self.set_compiler_filter(self._backup_compiler_filter)

    def clean_up(self) -> None:
        steps = [
            self.kill_vm_and_reconnect_adb,
            lambda: self.shell.try_run("rm", "-rf", settings.COMPOS_TEST_ROOT),
            lambda: self.shell.try_run("rm", "-rf", settings.ODREFRESH_OUTPUT_DIR),
            self.restore_compiler_filter,
        ]
        for step in steps:
            try:
                step()
            except Exception as e:  # pylint: disable=broad-except
                print("Error cleaning up CompOS state", e)

    def _file_exists(self, path: str) -> bool:
        return self.shell.run_for_result("test", "-f", path).ok

    def compare_with_compos(self, compiler_filter: str) -> ComposComparisonOut:
        self.set_compiler_filter(compiler_filter)

        # Ground truth: local compilation must succeed.
        start = time.time()
        local = self.run_odrefresh("--force-compile")
        local_elapsed_ms = (time.time() - start) * 1000
        if local.exit_code != OdrefreshExitCode.COMPILATION_SUCCESS:
            raise CommandError(local)
        print(f"Local compilation took {local_elapsed_ms:.0f}ms")

        expected = self.checksum_directory_content_partial(settings.ODREFRESH_OUTPUT_DIR)

        # --check may delete the output.
        check = self.run_odrefresh("--check")
        if check.exit_code != OdrefreshExitCode.OKAY:
            raise CommandError(check)

        self.shell.try_run("rm", "-rf", settings.COMPOS_TEST_ROOT)
        self.shell.try_run("rm", "-rf", settings.ODREFRESH_OUTPUT_DIR)

        start = time.time()
        compos = self.shell.run_with_timeout(
            self.timeout, settings.COMPOSD_CMD_BIN, "test-compile"
        )
        compos_elapsed_ms = (time.time() - start) * 1000
        print(f"Comp OS compilation took {compos_elapsed_ms:.0f}ms")
        self.kill_vm_and_reconnect_adb()

        actual = self.checksum_directory_content_partial(settings.ODREFRESH_OUTPUT_DIR)
        info = settings.ODREFRESH_OUTPUT_DIR + "/compos.info"

        return ComposComparisonOut(
            compiler_filter=compiler_filter,
            local_exit_code=int(local.exit_code or 0),
            local_elapsed_ms=local_elapsed_ms,
            compos_exit_code=-1 if compos.exit_code is None else compos.exit_code,
            compos_elapsed_ms=compos_elapsed_ms,
            checksums_match=expected == actual,
            compos_info_present=self._file_exists(info)
            and self._file_exists(info + ".signature"),
        )
