"""Supply chain behavior analysis for npm manifests.

Inspects a package.json for install-time risk:
- Install lifecycle scripts (preinstall, postinstall, prepublish, prepare)
- Dangerous shell/JS patterns inside those scripts
- Native code compilation tooling
- Execution context and network/filesystem capabilities
"""

import re

from deprisk.models.schemas import (
    ExecutionContext,
    InstallScript,
    PackageBehavior,
    ScriptType,
    SupplyChainRisk,
)

# === Pattern Definitions ===

# Lifecycle scripts inspected, in reporting order
INSTALL_SCRIPT_TYPES = [
    ScriptType.PREINSTALL,
    ScriptType.POSTINSTALL,
    ScriptType.PREPUBLISH,
    ScriptType.PREPARE,
]

# Every matching pattern contributes its description; all are checked
DANGEROUS_PATTERNS = [
    # Network fetches
    (re.compile(r"curl\s+", re.IGNORECASE), "Downloads external content via curl"),
    (re.compile(r"wget\s+", re.IGNORECASE), "Downloads external content via wget"),
    (re.compile(r"https?://", re.IGNORECASE), "References external URLs"),
    # Command execution
    (re.compile(r"\$\("), "Uses command substitution"),
    (re.compile(r"`[^`]+`"), "Uses backtick command execution"),
    (re.compile(r"eval\s*\(", re.IGNORECASE), "Uses eval() which can execute arbitrary code"),
    (re.compile(r"exec\s*\(", re.IGNORECASE), "Uses exec() for command execution"),
    (re.compile(r"child_process", re.IGNORECASE), "Uses child_process module"),
    (re.compile(r"spawn\s*\(", re.IGNORECASE), "Spawns child processes"),
    # Destructive or privileged operations
    (re.compile(r"rm\s+-rf", re.IGNORECASE), "Destructive file operations (rm -rf)"),
    (re.compile(r"chmod\s+", re.IGNORECASE), "Modifies file permissions"),
    (re.compile(r"sudo\s+", re.IGNORECASE), "Attempts privilege escalation"),
    # Environment access
    (re.compile(r"\.env", re.IGNORECASE), "May access environment variables or .env files"),
    (re.compile(r"process\.env", re.IGNORECASE), "Accesses environment variables"),
    # Obfuscation
    (re.compile(r"base64", re.IGNORECASE), "Uses base64 encoding (possible obfuscation)"),
    (re.compile(r"Buffer\.from.*toString", re.IGNORECASE), "Potential encoded payload"),
    (re.compile(r"require\s*\(\s*['\"][^'\"]+['\"]\s*\)", re.IGNORECASE), "Dynamic require statements"),
    # Interpreters
    (re.compile(r"node\s+-e", re.IGNORECASE), "Inline Node.js execution"),
    (re.compile(r"powershell", re.IGNORECASE), "PowerShell execution"),
    (re.compile(r"cmd\s*/c", re.IGNORECASE), "Windows command execution"),
]

ENCODED_CHARS_PATTERN = re.compile(r"\\x[0-9a-f]{2}|\\u[0-9a-f]{4}", re.IGNORECASE)

# Scripts longer than this on a single line look obfuscated
LONG_SCRIPT_THRESHOLD = 500

# Dependency name fragments that indicate native compilation
NATIVE_BINDING_PATTERNS = [
    "node-gyp",
    "node-pre-gyp",
    "prebuild",
    "prebuild-install",
    "napi",
    "nan",
    "bindings",
    "ffi",
    "ffi-napi",
]

NETWORK_PACKAGES = ["axios", "fetch", "node-fetch", "request"]
FILESYSTEM_PACKAGES = ["fs-extra", "glob", "rimraf"]

# Points added to the supply chain sub-score
INSTALL_SCRIPT_POINTS = 20
NATIVE_BINDING_POINTS = 15
RISK_PATTERN_POINTS = 10


class SupplyChainAnalyzer:
    """Analyzer for install-time behavior declared in a package manifest."""

    def analyze(self, package_json: dict, is_dev: bool = False) -> SupplyChainRisk:
        """Build the behavioral risk profile of a manifest.

        Args:
            package_json: Parsed package.json content.
            is_dev: Whether the manifest is only used in development.

        Returns:
            SupplyChainRisk describing scripts, native code and attack surface.
        """
        package_scripts = package_json.get("scripts") or {}

        scripts = []
        for script_type in INSTALL_SCRIPT_TYPES:
            content = package_scripts.get(script_type.value)
            if content:
                scripts.append(self._analyze_script(script_type, content))

        has_install_scripts = bool(scripts)
        has_native_bindings = self._has_native_bindings(package_json, package_scripts)
        execution_context = self._execution_context(package_json, is_dev)

        risky_scripts = [script for script in scripts if script.risks]
        dependencies = package_json.get("dependencies") or {}

        attack_surface = []
        if has_install_scripts:
            attack_surface.append("Install-time code execution")
        if has_native_bindings:
            attack_surface.append("Native code compilation and execution")
        if risky_scripts:
            attack_surface.append("Suspicious script patterns detected")
        for script in risky_scripts:
            attack_surface.append(f"{script.type.value}: {', '.join(script.risks)}")
        if any(name in dependencies for name in NETWORK_PACKAGES):
            attack_surface.append("Has network access capabilities")
        if any(name in dependencies for name in FILESYSTEM_PACKAGES):
            attack_surface.append("Has filesystem access capabilities")

        return SupplyChainRisk(
            has_install_scripts=has_install_scripts,
            scripts=scripts,
            has_native_bindings=has_native_bindings,
            execution_context=execution_context,
            attack_surface=attack_surface,
        )

    def _analyze_script(self, script_type: ScriptType, content: str) -> InstallScript:
        """Check a lifecycle script against every dangerous pattern."""
        risks = [description for pattern, description in DANGEROUS_PATTERNS if pattern.search(content)]

        if len(content) > LONG_SCRIPT_THRESHOLD and "\n" not in content:
            risks.append("Long single-line script (possible obfuscation)")

        if ENCODED_CHARS_PATTERN.search(content):
            risks.append("Contains encoded characters")

        return InstallScript(type=script_type, content=content, risks=risks)

    def _has_native_bindings(self, package_json: dict, package_scripts: dict) -> bool:
        """Detect native compilation tooling in dependencies or the install script."""
        dependency_names = [
            *(package_json.get("dependencies") or {}),
            *(package_json.get("devDependencies") or {}),
            *(package_json.get("optionalDependencies") or {}),
        ]
        if any(marker in name for marker in NATIVE_BINDING_PATTERNS for name in dependency_names):
            return True

        install_script = package_scripts.get("install") or ""
        return "node-gyp" in install_script

    def _execution_context(self, package_json: dict, is_dev: bool) -> ExecutionContext:
        """Classify where the package runs; first match wins."""
        if package_json.get("browser") or package_json.get("unpkg") or package_json.get("jsdelivr"):
            return ExecutionContext.RUNTIME_BROWSER

        main = package_json.get("main")
        main = main if isinstance(main, str) else ""
        if package_json.get("bin") or "server" in main or "cli" in main:
            return ExecutionContext.RUNTIME_SERVER

        if is_dev:
            return ExecutionContext.CI_CD

        return ExecutionContext.BUILD_TIME


def supply_chain_score(risk: SupplyChainRisk | None) -> int:
    """Calculate the 0-100 supply chain sub-score.

    Install scripts add 20, native bindings add 15, and each matched risk
    pattern in any script adds 10. Missing data scores 0.
    """
    if risk is None:
        return 0

    score = 0
    if risk.has_install_scripts:
        score += INSTALL_SCRIPT_POINTS
    if risk.has_native_bindings:
        score += NATIVE_BINDING_POINTS
    for script in risk.scripts:
        score += len(script.risks) * RISK_PATTERN_POINTS

    return min(100, score)


def analyze_package_behavior(package_json: dict) -> PackageBehavior:
    """Summarize how a package ships (binaries, platform constraints, typings)."""
    return PackageBehavior(
        has_binaries=bool(package_json.get("bin")),
        has_engines=bool(package_json.get("engines")),
        has_os=bool(package_json.get("os")),
        has_cpu=bool(package_json.get("cpu")),
        has_funding=bool(package_json.get("funding")),
        has_types=bool(package_json.get("types") or package_json.get("typings")),
    )
