from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from portal import client
from portal.client import ApiError


# this command checks the backend api is reachable and set up
# run it with: python manage.py check_backend
class Command(BaseCommand):
    help = 'Checks that the backend api answers and reports whether first run setup is done'

    def add_arguments(self, parser):
        parser.add_argument(
            '--strict', action='store_true',
            help='Exit with an error when the backend is unreachable or not set up',
        )

    def handle(self, *args, **options):
        self.stdout.write(f'Checking backend at {settings.PORTAL_API_BASE_URL}...')

        try:
            is_setup = client.get_api_client().setup.check()
        except ApiError as e:
            if options['strict']:
                raise CommandError(f'Backend check failed: {e.message}')
            self.stdout.write(self.style.WARNING(f'Backend check failed: {e.message}'))
            return

        if is_setup:
            self.stdout.write(self.style.SUCCESS('Backend is up and set up.'))
        elif options['strict']:
            raise CommandError('Backend is up but has not been set up yet.')
        else:
            self.stdout.write(self.style.WARNING('Backend is up but not set up yet, open /setup/ to finish.'))
