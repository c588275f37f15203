from django.core.management.base import BaseCommand

from payments.events import dispatch_pending_events
from payments.models import PaymentEvent


class Command(BaseCommand):
	help = 'Deliver payment events (agent notifications) that were not delivered after commit'

	def add_arguments(self, parser):
		parser.add_argument('--limit', type=int, default=100)
		parser.add_argument('--max-attempts', type=int, default=10)

	def handle(self, *args, **options):
		delivered = dispatch_pending_events(limit=options['limit'], max_attempts=options['max_attempts'])
		remaining = PaymentEvent.objects.filter(delivered_at__isnull=True).count()

		self.stdout.write(self.style.SUCCESS(f"Delivered {delivered} payment events"))
		if remaining:
			self.stdout.write(self.style.WARNING(f"{remaining} payment events still undelivered"))
