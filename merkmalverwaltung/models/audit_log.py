"""AuditLog model for tracking bulk and destructive operations."""
from datetime import datetime

from merkmalverwaltung import db


class AuditLog(db.Model):
    """Audit log entry for tracking important events.

    Events are categorized by importance (niedrig, mittel, hoch, kritisch)
    and by module code ('merkmalstexte', 'gruppen', 'identnr', 'system').
    """
    __tablename__ = 'audit_log'

    WICHTIGKEITEN = ('niedrig', 'mittel', 'hoch', 'kritisch')

    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, index=True, nullable=False)

    # In which module?
    modul = db.Column(db.String(50), nullable=False, index=True)

    # What happened?
    aktion = db.Column(db.String(100), nullable=False, index=True)
    details = db.Column(db.Text, nullable=True)

    # How important?
    wichtigkeit = db.Column(db.String(20), default='niedrig', index=True, nullable=False)

    # Which entity was affected?
    entity_type = db.Column(db.String(50), nullable=True)  # e.g. 'Merkmalstext', 'Identnr'
    entity_id = db.Column(db.Integer, nullable=True)

    ip_adresse = db.Column(db.String(45), nullable=True)  # IPv6 compatible

    def __repr__(self):
        return f'<AuditLog {self.id}: {self.modul}.{self.aktion} @ {self.timestamp}>'

    def to_dict(self):
        return {
            'id': self.id,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'modul': self.modul,
            'aktion': self.aktion,
            'details': self.details,
            'wichtigkeit': self.wichtigkeit,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
        }

    @classmethod
    def recent(cls, limit=50, modul=None):
        query = cls.query
        if modul:
            query = query.filter_by(modul=modul)
        return query.order_by(cls.timestamp.desc(), cls.id.desc()).limit(limit).all()
