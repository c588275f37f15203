from django.core.management.base import BaseCommand

from commissions.services import disburse_outstanding


class Command(BaseCommand):
	help = 'Disburse commission for paid payments whose disbursement did not complete'

	def add_arguments(self, parser):
		parser.add_argument('--limit', type=int, default=100)

	def handle(self, *args, **options):
		done, failed = disburse_outstanding(limit=options['limit'])

		self.stdout.write(self.style.SUCCESS(f"Disbursed commission for {done} payments"))
		if failed:
			self.stdout.write(self.style.ERROR(f"{failed} payments failed again, see logs"))
