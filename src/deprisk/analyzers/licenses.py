"""License classification against a curated SPDX table.

Maps a raw license identifier (as found in a package manifest) to a risk
classification. Handles SPDX-style combinations:

- ``A OR B`` / ``A/B``: dual licensing, classified as ambiguous
- ``A AND B``: every license applies, classified as conditional
"""

import re

from deprisk.models.schemas import LicenseInfo, LicenseRisk

# Insertion order matters: the substring fallback returns the first key that matches.
LICENSE_DATABASE: dict[str, dict] = {
    # Permissive
    "MIT": {
        "name": "MIT License",
        "risk_level": LicenseRisk.SAFE,
        "explanation": "Permissive license with minimal restrictions. Safe for commercial use.",
        "is_osi_approved": True,
    },
    "ISC": {
        "name": "ISC License",
        "risk_level": LicenseRisk.SAFE,
        "explanation": "Permissive license similar to MIT. Safe for commercial use.",
        "is_osi_approved": True,
    },
    "BSD-2-Clause": {
        "name": "BSD 2-Clause License",
        "risk_level": LicenseRisk.SAFE,
        "explanation": "Permissive license with minimal restrictions. Safe for commercial use.",
        "is_osi_approved": True,
    },
    "BSD-3-Clause": {
        "name": "BSD 3-Clause License",
        "risk_level": LicenseRisk.SAFE,
        "explanation": "Permissive license. Requires attribution. Safe for commercial use.",
        "is_osi_approved": True,
    },
    "Apache-2.0": {
        "name": "Apache License 2.0",
        "risk_level": LicenseRisk.SAFE,
        "explanation": "Permissive license with patent protection. Safe for commercial use.",
        "is_osi_approved": True,
    },
    "Unlicense": {
        "name": "The Unlicense",
        "risk_level": LicenseRisk.SAFE,
        "explanation": "Public domain dedication. No restrictions.",
        "is_osi_approved": True,
    },
    "CC0-1.0": {
        "name": "CC0 1.0 Universal",
        "risk_level": LicenseRisk.SAFE,
        "explanation": "Public domain dedication. No restrictions.",
        "is_osi_approved": False,
    },
    "WTFPL": {
        "name": "Do What The F*ck You Want To Public License",
        "risk_level": LicenseRisk.SAFE,
        "explanation": "Extremely permissive. No restrictions.",
        "is_osi_approved": False,
    },
    "0BSD": {
        "name": "Zero-Clause BSD",
        "risk_level": LicenseRisk.SAFE,
        "explanation": "Public domain equivalent. No restrictions.",
        "is_osi_approved": True,
    },
    # Weak copyleft
    "LGPL-2.0": {
        "name": "GNU Lesser General Public License v2.0",
        "risk_level": LicenseRisk.CONDITIONAL,
        "explanation": (
            "Weak copyleft. Changes to the library must be shared, but your code "
            "can remain proprietary if linked dynamically."
        ),
        "is_osi_approved": True,
    },
    "LGPL-2.1": {
        "name": "GNU Lesser General Public License v2.1",
        "risk_level": LicenseRisk.CONDITIONAL,
        "explanation": (
            "Weak copyleft. Changes to the library must be shared, but your code "
            "can remain proprietary if linked dynamically."
        ),
        "is_osi_approved": True,
    },
    "LGPL-3.0": {
        "name": "GNU Lesser General Public License v3.0",
        "risk_level": LicenseRisk.CONDITIONAL,
        "explanation": (
            "Weak copyleft. Changes to the library must be shared, but your code "
            "can remain proprietary if linked dynamically."
        ),
        "is_osi_approved": True,
    },
    "MPL-2.0": {
        "name": "Mozilla Public License 2.0",
        "risk_level": LicenseRisk.CONDITIONAL,
        "explanation": "File-level copyleft. Modified files must be shared, but your code can remain proprietary.",
        "is_osi_approved": True,
    },
    "EPL-1.0": {
        "name": "Eclipse Public License 1.0",
        "risk_level": LicenseRisk.CONDITIONAL,
        "explanation": "Weak copyleft similar to MPL. Modified code must be shared.",
        "is_osi_approved": True,
    },
    "EPL-2.0": {
        "name": "Eclipse Public License 2.0",
        "risk_level": LicenseRisk.CONDITIONAL,
        "explanation": "Weak copyleft similar to MPL. Modified code must be shared.",
        "is_osi_approved": True,
    },
    "CDDL-1.0": {
        "name": "Common Development and Distribution License 1.0",
        "risk_level": LicenseRisk.CONDITIONAL,
        "explanation": "File-level copyleft. Modified files must be shared under CDDL.",
        "is_osi_approved": True,
    },
    # Strong copyleft
    "GPL-2.0": {
        "name": "GNU General Public License v2.0",
        "risk_level": LicenseRisk.HIGH_RISK,
        "explanation": (
            "Strong copyleft. Your entire project may need to be licensed under "
            "GPL if you distribute it."
        ),
        "is_osi_approved": True,
    },
    "GPL-3.0": {
        "name": "GNU General Public License v3.0",
        "risk_level": LicenseRisk.HIGH_RISK,
        "explanation": (
            "Strong copyleft. Your entire project may need to be licensed under "
            "GPL if you distribute it. Includes patent protection."
        ),
        "is_osi_approved": True,
    },
    "AGPL-3.0": {
        "name": "GNU Affero General Public License v3.0",
        "risk_level": LicenseRisk.HIGH_RISK,
        "explanation": (
            "Network copyleft. Even server-side use requires sharing your source "
            "code. Very restrictive for commercial SaaS."
        ),
        "is_osi_approved": True,
    },
    "SSPL-1.0": {
        "name": "Server Side Public License v1",
        "risk_level": LicenseRisk.HIGH_RISK,
        "explanation": (
            "Extreme copyleft. Offering the software as a service requires sharing "
            "ALL service code. Not OSI approved."
        ),
        "is_osi_approved": False,
    },
    "CC-BY-SA-4.0": {
        "name": "Creative Commons Attribution Share Alike 4.0",
        "risk_level": LicenseRisk.HIGH_RISK,
        "explanation": "Share-alike requirement. Derived works must use the same license.",
        "is_osi_approved": False,
    },
    "OSL-3.0": {
        "name": "Open Software License 3.0",
        "risk_level": LicenseRisk.HIGH_RISK,
        "explanation": "Strong copyleft with network clause. Similar to AGPL.",
        "is_osi_approved": True,
    },
    # Custom and proprietary markers
    "SEE LICENSE IN LICENSE": {
        "name": "Custom License",
        "risk_level": LicenseRisk.AMBIGUOUS,
        "explanation": "Custom license requires manual review. Could contain unexpected restrictions.",
        "is_osi_approved": False,
    },
    "UNLICENSED": {
        "name": "No License / Proprietary",
        "risk_level": LicenseRisk.HIGH_RISK,
        "explanation": "No license means all rights reserved. You may not have permission to use this code.",
        "is_osi_approved": False,
    },
}

# Upper-cased view of the table, same order
_NORMALIZED_DATABASE: dict[str, dict] = {key.upper(): data for key, data in LICENSE_DATABASE.items()}

# Sub-score used when weighting a dependency's license risk
LICENSE_RISK_SCORES = {
    LicenseRisk.SAFE: 0,
    LicenseRisk.CONDITIONAL: 40,
    LicenseRisk.AMBIGUOUS: 60,
    LicenseRisk.UNKNOWN: 70,
    LicenseRisk.HIGH_RISK: 100,
}

_DUAL_LICENSE_SPLIT = re.compile(r"\s+OR\s+|/")


def classify_license(license_id: str | None) -> LicenseInfo:
    """Classify a license identifier.

    Args:
        license_id: Raw license string from a manifest, or None if absent.

    Returns:
        LicenseInfo describing the license's risk. Never raises.
    """
    if not license_id or not license_id.strip():
        return LicenseInfo(
            spdx_id="UNKNOWN",
            name="Unknown License",
            risk_level=LicenseRisk.UNKNOWN,
            explanation="No license information found. This could mean all rights reserved or missing metadata.",
            is_osi_approved=False,
        )

    normalized = license_id.upper().strip()

    # Dual licensing (e.g. "MIT OR GPL-3.0", "MIT/Apache-2.0")
    if " OR " in normalized or "/" in normalized:
        candidates = [token.strip(" ()") for token in _DUAL_LICENSE_SPLIT.split(normalized)]
        resolved = [_NORMALIZED_DATABASE[c] for c in candidates if c in _NORMALIZED_DATABASE]

        if len(resolved) > 1:
            has_safe = any(data["risk_level"] == LicenseRisk.SAFE for data in resolved)
            has_high_risk = any(data["risk_level"] == LicenseRisk.HIGH_RISK for data in resolved)

            if has_safe and has_high_risk:
                explanation = (
                    "Dual license with both permissive and copyleft options. You may "
                    "choose the permissive license, but verify compatibility."
                )
            else:
                explanation = "Multiple license options available. Verify which license applies to your use case."

            return LicenseInfo(
                spdx_id=license_id,
                name=f"Dual License: {license_id}",
                risk_level=LicenseRisk.AMBIGUOUS,
                explanation=explanation,
                is_osi_approved=any(data["is_osi_approved"] for data in resolved),
            )

    # Combined licensing: every license must be honored
    if " AND " in normalized:
        return LicenseInfo(
            spdx_id=license_id,
            name=f"Combined License: {license_id}",
            risk_level=LicenseRisk.CONDITIONAL,
            explanation="Multiple licenses must ALL be followed. Review each license requirement carefully.",
            is_osi_approved=False,
        )

    exact = _NORMALIZED_DATABASE.get(normalized)
    if exact:
        return LicenseInfo(spdx_id=license_id, **exact)

    # Common variations such as "GPL-3.0-only" or "MIT License"
    for key, data in _NORMALIZED_DATABASE.items():
        if key in normalized or normalized in key:
            return LicenseInfo(spdx_id=license_id, **data)

    return LicenseInfo(
        spdx_id=license_id,
        name=license_id,
        risk_level=LicenseRisk.UNKNOWN,
        explanation="Unrecognized license. Manual review recommended to understand restrictions.",
        is_osi_approved=False,
    )


def license_risk_score(license: LicenseInfo) -> int:
    """Convert a license classification to a 0-100 risk sub-score."""
    return LICENSE_RISK_SCORES.get(license.risk_level, 50)
