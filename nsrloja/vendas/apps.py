from django.apps import AppConfig


class VendasConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'nsrloja.vendas'
    label = 'vendas'
    verbose_name = 'Vendas, Frete e Pagamentos'
