from django.core.management.base import BaseCommand

from core.services.liturgy import ensure_liturgy_defaults


class Command(BaseCommand):
    help = "Cria as funcoes liturgicas e os tipos de missa padrao que estiverem faltando."

    def handle(self, *args, **options):
        created = ensure_liturgy_defaults()
        self.stdout.write(self.style.SUCCESS(f"Seeded {created} liturgy records."))
