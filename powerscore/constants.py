"""Constants for benchmark sampling and scoring defaults."""

import logging

QUICK_TRIALS = 1
"""Trials per probe in quick mode."""

ACCURATE_TRIALS = 3
"""Trials per probe in accurate mode."""

CPU_TRIAL_TIMEOUT_SECONDS = 8.0
"""Default timeout in seconds for one sysbench CPU trial."""

MEMORY_TRIAL_TIMEOUT_SECONDS = 15.0
"""Default timeout in seconds for one sysbench memory trial."""

DISK_WRITE_TRIAL_TIMEOUT_SECONDS = 12.0
"""Default timeout in seconds for one dd write trial."""

DISK_READ_TRIAL_TIMEOUT_SECONDS = 10.0
"""Default timeout in seconds for one dd read trial."""

NETWORK_TRIAL_TIMEOUT_SECONDS = 25.0
"""Default timeout in seconds for one mirror download trial."""

LOAD_TRIAL_TIMEOUT_SECONDS = 14.0
"""Default timeout in seconds for the stress-ng burst plus the load average read."""

IOPS_TRIAL_TIMEOUT_SECONDS = 12.0
"""Default timeout in seconds for the fio random-read run."""

PING_TIMEOUT_SECONDS = 6.0
"""Default timeout in seconds for the latency ping."""

PORT_CHECK_TIMEOUT_SECONDS = 3.0
"""Default TCP connect timeout for outbound port checks."""

CPU_PER_CORE_CEILING = 4000.0
"""CPU events/sec per vCPU treated as 100% of scale."""

MEMORY_CEILING_MIB_S = 18000.0
"""Memory throughput in MiB/s treated as 100% of scale."""

DISK_CEILING_MB_S = 700.0
"""Disk write throughput in MB/s treated as 100% of scale."""

NETWORK_CEILING_MB_S = 30.0
"""Network download median in MB/s treated as 100% of scale."""

WEIGHT_TOLERANCE = 1e-6
"""Allowed deviation of the weight vector sum from 1.0."""

DEFAULT_MIRRORS = (
    "http://cachefly.cachefly.net/100mb.test",
    "http://ipv4.download.thinkbroadband.com/100MB.zip",
    "https://proof.ovh.net/files/100Mb.dat",
)
"""HTTP mirrors sampled by the network probe."""

DEFAULT_PORT_CHECKS = (
    ("google.com", 80),
    ("google.com", 443),
    ("1.1.1.1", 53),
    ("8.8.8.8", 53),
)
"""Outbound host/port pairs checked for connectivity."""

PING_TARGET = "1.1.1.1"
"""Host pinged for round-trip latency."""

GATE_MINIMUM_SCORE = 75.0
"""Minimum power score required by the strict KEEP gate."""

COLOR_DEBUG = "\033[36m"
"""ANSI color code for DEBUG level logs (light blue/cyan)."""

COLOR_INFO = "\033[32m"
"""ANSI color code for INFO level logs (green)."""

COLOR_WARNING = "\033[33m"
"""ANSI color code for WARNING level logs (yellow)."""

COLOR_ERROR = "\033[31m"
"""ANSI color code for ERROR level logs (red)."""

COLOR_CRITICAL = "\033[31m"
"""ANSI color code for CRITICAL level logs (red)."""

COLOR_RESET = "\033[0m"
"""ANSI color reset code."""

LOG_LEVEL_COLORS = {
    logging.DEBUG: COLOR_DEBUG,
    logging.INFO: COLOR_INFO,
    logging.WARNING: COLOR_WARNING,
    logging.ERROR: COLOR_ERROR,
    logging.CRITICAL: COLOR_CRITICAL,
}
"""Mapping of logging levels to their ANSI color codes."""
