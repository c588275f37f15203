from django.core.management.base import BaseCommand, CommandError
from django.db import DatabaseError, transaction

from accounts.models import User


class DryRunRollback(Exception):
    pass


class Command(BaseCommand):
    help = 'Rewrite agent codes from an old prefix to a new one, including referrer codes that point at them'

    def add_arguments(self, parser):
        parser.add_argument('--from', dest='old_prefix', default='AGT', help='Prefix to replace (default AGT)')
        parser.add_argument('--to', dest='new_prefix', default='KH', help='Replacement prefix (default KH)')
        parser.add_argument('--dry-run', action='store_true', help='Run without making changes')

    def handle(self, *args, **options):
        old_prefix = options['old_prefix']
        new_prefix = options['new_prefix']
        dry_run = options['dry_run']

        if dry_run:
            self.stdout.write("DRY RUN MODE - No changes will be made")

        users = list(User.objects.filter(agent_code__startswith=old_prefix).order_by('id'))
        if not users:
            self.stdout.write(self.style.SUCCESS(f"No {old_prefix} codes found. All agent codes are already updated!"))
            return

        self.stdout.write(f"Found {len(users)} users with {old_prefix} prefix")

        updated = 0
        try:
            with transaction.atomic():
                for user in users:
                    old_code = user.agent_code
                    new_code = new_prefix + old_code[len(old_prefix):]
                    self.stdout.write(f"  {old_code} -> {new_code}")

                    # queryset updates: agent codes are immutable through save()
                    User.objects.filter(pk=user.pk).update(agent_code=new_code)
                    User.objects.filter(referrer_code=old_code).update(referrer_code=new_code)
                    updated += 1

                if dry_run:
                    raise DryRunRollback()
        except DryRunRollback:
            self.stdout.write(self.style.SUCCESS(f"Dry run complete. Would update {updated} agent codes"))
            self.stdout.write("Run without --dry-run to apply changes")
            return
        except DatabaseError as e:
            raise CommandError(f"Error updating agent codes: {e}")

        self.stdout.write(self.style.SUCCESS(
            f"Successfully updated {updated} agent codes from {old_prefix} to {new_prefix}"
        ))
