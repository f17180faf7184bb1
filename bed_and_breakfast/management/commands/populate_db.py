from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from bed_and_breakfast.models import Room


class Command(BaseCommand):
    help = 'Populate database with the guest rooms and, optionally, an admin account'

    def add_arguments(self, parser):
        parser.add_argument('--admin-email', help='Email of the admin account to create')
        parser.add_argument('--admin-password', help='Password of the admin account to create')

    def handle(self, *args, **options):
        rooms_data = [
            {
                'slug': 'generals-quarters',
                'room_name': "General's Quarters",
            },
            {
                'slug': 'majors-suite',
                'room_name': "Major's Suite",
            },
        ]

        for room_data in rooms_data:
            room, created = Room.objects.get_or_create(
                slug=room_data['slug'],
                defaults=room_data
            )

            if created:
                self.stdout.write(f'Created room: {room.room_name}')
            else:
                self.stdout.write(f'Room {room.room_name} already exists')

        email = options.get('admin_email')
        password = options.get('admin_password')
        if email and password:
            User = get_user_model()
            if User.objects.filter(email__iexact=email).exists():
                self.stdout.write(f'Admin {email} already exists')
            else:
                User.objects.create_superuser(username=email, email=email, password=password)
                self.stdout.write(f'Created admin: {email}')

        self.stdout.write(
            self.style.SUCCESS('Successfully populated database')
        )
