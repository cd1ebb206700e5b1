# nsrloja/core/apps.py

from django.apps import AppConfig

class CoreConfig(AppConfig):
    # O nome completo do path da aplicação
    name = 'nsrloja.core'
    label = 'core'
    verbose_name = 'Entidades e Regras de Checkout (Core)'

    # Esta camada não tem modelos: apenas entidades puras, casos de uso
    # e o comando wait_for_db.
    default_auto_field = 'django.db.models.BigAutoField'
