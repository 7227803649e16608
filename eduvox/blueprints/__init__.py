from .subscription import subscription_bp
from .profile import profile_bp
from .pathways import pathways_bp
from .admin import admin_bp
from .session import session_bp

__all__ = ['subscription_bp', 'profile_bp', 'pathways_bp', 'admin_bp', 'session_bp']
