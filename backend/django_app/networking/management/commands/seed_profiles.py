from django.core.management.base import BaseCommand

from networking.event_service import create_event, join_event
from networking.models import Event, Profile
from networking.qr_service import ensure_token


class Command(BaseCommand):
    help = 'Seed demo attendee profiles and a demo event.'

    def handle(self, *args, **options):
        data = [
            {
                'full_name': 'Riya Patel',
                'title': 'Product Lead',
                'company': 'Helpdesk AI',
                'location': 'Bengaluru',
                'bio': 'Building privacy-first copilots for customer support teams.',
                'skills': ['product strategy', 'LLM evaluation', 'customer research'],
                'interests': ['privacy', 'support automation'],
                'goals': ['find design partners', 'hire ML engineers'],
                'linkedin_url': 'https://www.linkedin.com/in/riya-patel-ai',
            },
            {
                'full_name': 'Arjun Mehta',
                'title': 'Founder',
                'company': 'ShelfSense',
                'location': 'Mumbai',
                'bio': 'Looking for distribution partners in retail AI.',
                'skills': ['sales', 'computer vision', 'fundraising'],
                'interests': ['retail', 'edge AI'],
                'goals': ['meet investors', 'find distribution partners'],
                'linkedin_url': 'https://www.linkedin.com/in/arjun-mehta-founder',
            },
            {
                'full_name': 'Isha Nair',
                'title': 'Research Engineer',
                'company': 'TinyInference Labs',
                'location': 'Pune',
                'bio': 'Working on efficient inference for edge devices.',
                'skills': ['model compression', 'CUDA', 'computer vision'],
                'interests': ['edge AI', 'open source'],
                'goals': ['collaborate on benchmarks'],
                'linkedin_url': 'https://www.linkedin.com/in/isha-nair-ml',
            },
            {
                'full_name': 'Sana Qureshi',
                'title': 'Community Manager',
                'company': 'City AI Collective',
                'location': 'Hyderabad',
                'bio': 'Connecting AI builders with city partnerships.',
                'skills': ['community building', 'partnerships'],
                'interests': ['civic tech', 'open source'],
                'goals': ['recruit speakers', 'find sponsors'],
                'linkedin_url': 'https://www.linkedin.com/in/sana-qureshi-community',
            },
        ]

        profiles = []
        for item in data:
            profile, _ = Profile.objects.update_or_create(full_name=item['full_name'], defaults=item)
            ensure_token(profile)
            profiles.append(profile)

        self.stdout.write(self.style.SUCCESS(f'Seeded {len(profiles)} profiles.'))

        organizer = profiles[1]
        event = Event.objects.filter(name='MeetMate Demo Summit', organizer=organizer).first()
        if event is None:
            event = create_event(
                organizer,
                name='MeetMate Demo Summit',
                description='A demo conference for trying out matching and QR connections.',
                location='Expo Hall A',
            )
        for profile in profiles:
            join_event(profile, event)

        self.stdout.write(self.style.SUCCESS(f'Event "{event.name}" join token: {event.qr_token}'))
