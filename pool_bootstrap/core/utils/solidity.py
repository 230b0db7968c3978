"""Compile bundled Solidity with py-solc-x.

Only ``@openzeppelin/*`` imports are allowed. They are read from a pinned npm
install under ``<project root>/.cache/solidity/``.
"""

from __future__ import annotations

import re
import subprocess
from pathlib import Path
from posixpath import dirname, normpath
from typing import Any

from loguru import logger
from solcx import compile_standard, get_installed_solc_versions, install_solc

from pool_bootstrap.core.config import project_root as find_project_root

SOLC_VERSION = "0.8.26"
OZ_CONTRACTS_VERSION = "5.4.0"
OZ_PREFIX = "@openzeppelin/"

_COMMENT_RE = re.compile(r"/\*.*?\*/|//[^\n]*", flags=re.DOTALL)
_IMPORT_RE = re.compile(
    r"""^\s*import\s+(?:[^;]*?\s+from\s+)?["']([^"']+)["']\s*;""",
    flags=re.MULTILINE,
)


def ensure_solc_installed(version: str = SOLC_VERSION) -> None:
    if version not in {str(v) for v in get_installed_solc_versions()}:
        logger.info(f"Installing solc {version}")
        install_solc(version)


def ensure_oz_installed(project_root: str | Path | None = None) -> Path:
    """``node_modules`` holding ``@openzeppelin/contracts@OZ_CONTRACTS_VERSION``."""
    root = Path(project_root) if project_root else (find_project_root() or Path.cwd())
    prefix = root / ".cache" / "solidity" / f"openzeppelin-{OZ_CONTRACTS_VERSION}"
    node_modules = prefix / "node_modules"
    marker = node_modules / "@openzeppelin" / "contracts"
    if marker.is_dir():
        return node_modules

    prefix.mkdir(parents=True, exist_ok=True)
    package = f"@openzeppelin/contracts@{OZ_CONTRACTS_VERSION}"
    logger.info(f"npm install {package} into {prefix}")
    subprocess.run(
        ["npm", "install", "--prefix", str(prefix), package],
        check=True,
        capture_output=True,
        text=True,
    )
    if not marker.is_dir():
        raise RuntimeError(f"npm install left no OpenZeppelin sources under {node_modules}")
    return node_modules


def find_imports(source: str) -> list[str]:
    return [m.group(1).strip() for m in _IMPORT_RE.finditer(_COMMENT_RE.sub("", source))]


def _resolve_import(importer: str, target: str) -> str:
    # OpenZeppelin files import their siblings relatively
    if target.startswith(".") and importer.startswith(OZ_PREFIX):
        return normpath(f"{dirname(importer)}/{target}")
    return target


def collect_sources(
    source_code: str,
    *,
    source_filename: str,
    project_root: str | Path | None = None,
) -> dict[str, str]:
    """Every file reachable from *source_code* through imports, keyed by import path."""
    sources = {source_filename: source_code}
    pending = [source_filename]
    node_modules: Path | None = None

    while pending:
        importer = pending.pop()
        for target in find_imports(sources[importer]):
            key = _resolve_import(importer, target)
            if key in sources:
                continue
            if not key.startswith(OZ_PREFIX):
                raise RuntimeError(
                    f"Unsupported import '{target}' in '{importer}'; "
                    f"only {OZ_PREFIX}* can be resolved"
                )
            node_modules = node_modules or ensure_oz_installed(project_root)
            path = node_modules / key
            if not path.is_file():
                raise FileNotFoundError(f"Import not found: {key} (looked for {path})")
            sources[key] = path.read_text(encoding="utf-8", errors="replace")
            pending.append(key)

    return sources


def compile_contract(
    source_code: str,
    *,
    contract_name: str,
    source_filename: str = "Contract.sol",
    project_root: str | Path | None = None,
    optimize: bool = True,
    optimize_runs: int = 200,
) -> tuple[list[dict[str, Any]], str]:
    """``(abi, 0x-bytecode)`` of *contract_name* defined in *source_code*."""
    ensure_solc_installed()
    sources = collect_sources(
        source_code, source_filename=source_filename, project_root=project_root
    )
    output = compile_standard(
        {
            "language": "Solidity",
            "sources": {key: {"content": text} for key, text in sources.items()},
            "settings": {
                "optimizer": {"enabled": optimize, "runs": optimize_runs},
                "outputSelection": {source_filename: {contract_name: ["abi", "evm.bytecode.object"]}},
            },
        },
        solc_version=SOLC_VERSION,
    )

    errors = [
        e.get("formattedMessage") or e.get("message", "")
        for e in output.get("errors", [])
        if e.get("severity") == "error"
    ]
    if errors:
        raise RuntimeError("Solidity compilation errors:\n" + "\n".join(errors))

    compiled = output.get("contracts", {}).get(source_filename, {})
    if contract_name not in compiled:
        raise ValueError(f"Contract '{contract_name}' not in {source_filename}; found {list(compiled)}")
    artifact = compiled[contract_name]
    bytecode = artifact.get("evm", {}).get("bytecode", {}).get("object", "")
    if not bytecode.removeprefix("0x"):
        raise RuntimeError(f"Compiled bytecode for '{contract_name}' is empty")
    return list(artifact.get("abi", [])), "0x" + bytecode.removeprefix("0x")
