import logging

from django.core.management.base import BaseCommand

from nsrloja.core.dependency_injection import get_expirar_pagamentos_use_case

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Expira PIX vencidos e cancela pedidos pendentes sem pagamento (executar via cron)'

    def handle(self, *args, **kwargs):
        resultado = get_expirar_pagamentos_use_case().executar()

        logger.info("Rotina de expiração: %s", resultado)
        self.stdout.write(self.style.SUCCESS(
            f"{resultado['pix_expirados']} PIX expirado(s), "
            f"{resultado['pedidos_cancelados']} pedido(s) cancelado(s)."
        ))
