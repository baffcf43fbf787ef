"""
Management command to issue identifiers to registrations that were stored
without them (e.g. imported before identifier issuance existed).

Existing regional codes and identification numbers are never changed.

Run: python manage.py issue_missing_identifiers
Use --dry-run to only print what would be issued.
"""
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.db.models import Q

from registrations.exceptions import AllocationError
from registrations.models import Registration
from registrations.utils import IDENTIFICATION_NUMBER, REGIONAL_CODE, allocate_identifier


FIELDS_BY_CATEGORY = (
    (REGIONAL_CODE, 'regional_code'),
    (IDENTIFICATION_NUMBER, 'identification_number'),
)


class Command(BaseCommand):
    help = 'Issue regional codes and identification numbers to registrations missing them'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Only show what would be issued, do not allocate or save.',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        if dry_run:
            self.stdout.write(self.style.WARNING('Dry run: no identifiers will be issued.'))

        missing = Q()
        for _category, field in FIELDS_BY_CATEGORY:
            missing |= Q(**{f'{field}__isnull': True}) | Q(**{field: ''})
        regs = Registration.objects.filter(missing).order_by('created_at')

        issued = 0
        for reg in regs:
            for category, field in FIELDS_BY_CATEGORY:
                if getattr(reg, field):
                    continue
                if dry_run:
                    self.stdout.write(f'  {reg.full_name}: would issue {category} for {reg.country}')
                    continue
                try:
                    code = allocate_identifier(category, reg.country)
                except AllocationError as e:
                    raise CommandError(f'Stopped at {reg.full_name}: {e}') from e

                with transaction.atomic():
                    locked = Registration.objects.select_for_update().get(pk=reg.pk)
                    if getattr(locked, field):
                        # Issued concurrently; the allocated value is left unused.
                        self.stdout.write(self.style.NOTICE(
                            f'  {reg.full_name}: {field} already set to "{getattr(locked, field)}", skipped {code}'
                        ))
                        continue
                    setattr(locked, field, code)
                    locked.save(update_fields=[field, 'updated_at'])
                issued += 1
                self.stdout.write(f'  {reg.full_name}: {field} -> "{code}"')

        self.stdout.write('')
        self.stdout.write(self.style.SUCCESS(f'Done. Identifiers issued: {issued}'))
