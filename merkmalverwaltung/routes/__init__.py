"""Flask routes."""
from merkmalverwaltung.routes.main import main_bp
from merkmalverwaltung.routes.merkmalstexte import merkmalstexte_bp
from merkmalverwaltung.routes.gruppen import gruppen_bp
from merkmalverwaltung.routes.identnrs import identnrs_bp

__all__ = [
    'main_bp',
    'merkmalstexte_bp',
    'gruppen_bp',
    'identnrs_bp',
]
