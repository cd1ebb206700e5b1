"""
Management command para aguardar o banco de dados estar disponível.
"""
import time
from django.db import connections
from django.db.utils import OperationalError
from django.core.management.base import BaseCommand, CommandError


class Command(BaseCommand):
    """Pausa a execução até o banco de dados aceitar conexões (usado antes do migrate no container)."""
    help = 'Aguarda o banco de dados ficar disponível.'

    def add_arguments(self, parser):
        parser.add_argument('--tentativas', type=int, default=30,
                            help='Número máximo de tentativas (uma por segundo).')

    def handle(self, *args, **options):
        self.stdout.write('Aguardando pelo banco de dados...')
        tentativas = options['tentativas']

        for tentativa in range(1, tentativas + 1):
            try:
                connections['default'].ensure_connection()
                break
            except OperationalError:
                self.stdout.write(f'Banco de dados indisponível ({tentativa}/{tentativas}), aguardando 1 segundo...')
                time.sleep(1)
        else:
            raise CommandError('Banco de dados não ficou disponível a tempo.')

        self.stdout.write(self.style.SUCCESS('Banco de dados disponível!'))
