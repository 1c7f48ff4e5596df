from __future__ import annotations

from sqlalchemy.orm import Session

from slawatch import config, models


STANDARD = "standard"
HIGH = "high"
SENSITIVITIES = {STANDARD, HIGH}


def infer_sensitivity(category: str) -> str:
    lowered = category.lower()
    if any(marker in lowered for marker in config.HIGH_SENSITIVITY_MARKERS):
        return HIGH
    return STANDARD


class AlertTypeRegistry:
    """Sensitivity per alert category, fixed at registration or on first lookup."""

    def __init__(self, entries: dict[str, str] | None = None) -> None:
        self._entries: dict[str, str] = {}
        self._inferred: dict[str, str] = {}
        for category, sensitivity in (entries or {}).items():
            self.register(category, sensitivity)

    def register(self, category: str, sensitivity: str | None = None) -> str:
        resolved = sensitivity or infer_sensitivity(category)
        if resolved not in SENSITIVITIES:
            raise ValueError(f"sensitivity must be one of {sorted(SENSITIVITIES)}")
        self._entries[category] = resolved
        self._inferred.pop(category, None)
        return resolved

    def sensitivity_for(self, category: str) -> str:
        if category in self._entries:
            return self._entries[category]
        # Unregistered categories get the name heuristic, resolved once and cached.
        if category not in self._inferred:
            self._inferred[category] = infer_sensitivity(category)
        return self._inferred[category]

    def is_high_sensitivity(self, category: str) -> bool:
        return self.sensitivity_for(category) == HIGH

    def categories(self) -> dict[str, str]:
        return dict(self._entries)

    @classmethod
    def from_db(cls, db: Session, tenant_id: str) -> AlertTypeRegistry:
        rows = db.query(models.AlertType).filter(models.AlertType.tenant_id == tenant_id).all()
        return cls({row.category: row.sensitivity for row in rows})


def register_alert_type(
    db: Session,
    tenant_id: str,
    category: str,
    sensitivity: str | None = None,
    description: str = "",
) -> models.AlertType:
    resolved = AlertTypeRegistry().register(category, sensitivity)
    row = (
        db.query(models.AlertType)
        .filter(models.AlertType.tenant_id == tenant_id, models.AlertType.category == category)
        .first()
    )
    if row is None:
        row = models.AlertType(tenant_id=tenant_id, category=category)
        db.add(row)
    row.sensitivity = resolved
    row.description = description
    db.commit()
    db.refresh(row)
    return row
