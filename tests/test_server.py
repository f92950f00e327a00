import pytest
from fastapi.testclient import TestClient

from conftest import FakeGenerator, FakeServices
from doodlemorph.config import GeneratorBackend, Settings
from doodlemorph.generation import GenerationServices
from doodlemorph.server import create_app


def make_client(settings=None, **kwargs):
    services = FakeServices(settings or Settings(fal_api_key='server-key'), **kwargs)
    return TestClient(create_app(services=services)), services


def test_health(client):
    response = client.get('/api/health')

    assert response.status_code == 200
    body = response.json()
    assert body['success'] is True
    assert body['status'] == 'ok'
    assert body['backend'] == 'fal'
    assert body['falConfigured'] is True


class TestGenerateImage:

    def test_success_prefers_request_key(self, client, services, png_data_url):
        response = client.post('/api/generate-image', json={
            'imageBase64': png_data_url, 'prompt': 'cartoon', 'apiKey': 'user-key',
        })

        assert response.status_code == 200
        assert response.json() == {'success': True, 'imageUrl': services.generator.image_url}
        assert services.keys == ['user-key']

    def test_falls_back_to_server_key(self, client, services, png_data_url):
        client.post('/api/generate-image', json={'imageBase64': png_data_url, 'prompt': 'cartoon'})

        assert services.keys == ['server-key']

    def test_bare_base64_becomes_data_url(self, client, services, png_data_url):
        bare = png_data_url.split(',', 1)[1]

        client.post('/api/generate-image', json={'imageBase64': bare, 'prompt': 'cartoon'})

        assert services.generator.calls[0][1] == png_data_url

    @pytest.mark.parametrize('body', [{'prompt': 'cartoon'}, {'imageBase64': 'abc'}, {}])
    def test_missing_fields(self, client, body):
        response = client.post('/api/generate-image', json=body)

        assert response.status_code == 400
        assert response.json() == {'success': False, 'error': 'Missing imageBase64 or prompt'}

    def test_no_key_anywhere(self, png_data_url):
        client, _ = make_client(Settings())

        response = client.post('/api/generate-image', json={'imageBase64': png_data_url, 'prompt': 'x'})

        assert response.status_code == 400
        assert response.json()['error'] == 'API key is required'

    def test_provider_failure(self, settings, png_data_url):
        generator = FakeGenerator(settings, fail_on={'image': 'always'}, error='quota exceeded')
        client, _ = make_client(settings, generator=generator)

        response = client.post('/api/generate-image', json={'imageBase64': png_data_url, 'prompt': 'x'})

        assert response.status_code == 500
        assert response.json() == {'success': False, 'error': 'quota exceeded'}


class TestGenerateVariants:

    def test_success(self, client, services, png_data_url):
        response = client.post('/api/generate-variants', json={
            'imageBase64': png_data_url,
            'variants': [{'prompt': 'wizard hat'}, {'prompt': 'cyberpunk'}],
        })

        assert response.status_code == 200
        body = response.json()
        assert body['success'] is True
        assert [v['prompt'] for v in body['variants']] == ['wizard hat', 'cyberpunk']
        assert [c[2] for c in services.generator.calls] == ['wizard hat', 'cyberpunk']

    def test_stops_at_first_failure(self, settings, png_data_url):
        generator = FakeGenerator(settings, fail_on={'variant': 2})
        client, _ = make_client(settings, generator=generator)

        response = client.post('/api/generate-variants', json={
            'imageBase64': png_data_url,
            'variants': [{'prompt': 'a'}, {'prompt': 'b'}, {'prompt': 'c'}],
        })

        assert response.status_code == 500
        assert response.json()['error'] == 'Variant 2 failed: boom'
        assert len(generator.calls) == 2

    @pytest.mark.parametrize('variants', [[], [{'prompt': ''}], [{'prompt': 'x'}] * 7])
    def test_invalid_input(self, client, png_data_url, variants):
        response = client.post('/api/generate-variants', json={
            'imageBase64': png_data_url, 'variants': variants,
        })

        assert response.status_code == 400
        body = response.json()
        assert body['success'] is False
        assert body['error'] == 'Invalid input'
        assert body['details']

    def test_no_key(self, png_data_url):
        client, _ = make_client(Settings())

        response = client.post('/api/generate-variants', json={
            'imageBase64': png_data_url, 'variants': [{'prompt': 'a'}],
        })

        assert response.status_code == 500
        assert response.json()['error'] == 'FAL API key is not configured on the server'


class TestGenerateAnimation:

    def test_single_image(self, settings):
        generator = FakeGenerator(settings, video_url='https://cdn.example/video.mp4')
        client, services = make_client(settings, generator=generator)

        response = client.post('/api/generate-animation', json={
            'imageUrl': 'https://cdn.example/a.png', 'falApiKey': 'user-key',
            'duration': 10, 'aspectRatio': '4:3',
        })

        assert response.status_code == 200
        assert response.json() == {'success': True, 'videoUrl': 'https://cdn.example/video.mp4'}
        kind, image_url, prompt, duration, aspect_ratio = generator.calls[0]
        assert image_url == 'https://cdn.example/a.png'
        assert duration == '10'
        assert aspect_ratio == '16:9'
        assert prompt
        assert services.keys == ['user-key']

    def test_several_images_animate_the_first(self, settings):
        generator = FakeGenerator(settings, video_url='https://cdn.example/video.mp4')
        client, _ = make_client(settings, generator=generator)

        response = client.post('/api/generate-animation', json={
            'imageUrls': ['https://cdn.example/a.png', 'https://cdn.example/b.png'],
        })

        assert response.status_code == 200
        assert generator.calls[0][1] == 'https://cdn.example/a.png'

    def test_one_image_url_is_not_enough(self, client):
        response = client.post('/api/generate-animation', json={'imageUrls': ['a']})

        assert response.status_code == 400
        assert response.json()['error'] == 'Need at least 2 image URLs'

    def test_no_image(self, client):
        response = client.post('/api/generate-animation', json={})

        assert response.status_code == 400
        assert response.json()['error'] == 'Image URL is required'

    def test_no_key(self):
        client, _ = make_client(Settings())

        response = client.post('/api/generate-animation', json={'imageUrl': 'https://cdn.example/a.png'})

        assert response.status_code == 400
        assert response.json()['error'] == 'API key is required'

    def test_provider_failure(self, settings):
        generator = FakeGenerator(settings, fail_on={'video': 'always'}, error='')
        client, _ = make_client(settings, generator=generator)

        response = client.post('/api/generate-animation', json={'imageUrl': 'https://cdn.example/a.png'})

        assert response.status_code == 500
        assert response.json()['error'] == 'Failed to generate animation'


class TestPrompts:

    def test_enhance(self, client):
        response = client.post('/api/enhance-prompt', json={'userPrompt': 'cute robot'})

        assert response.status_code == 200
        body = response.json()
        assert body['success'] is True
        assert body['originalPrompt'] == 'cute robot'
        assert body['enhancedPrompt'].startswith('cute robot')

    @pytest.mark.parametrize('body', [{}, {'userPrompt': ''}, {'userPrompt': 123}])
    def test_enhance_requires_text(self, client, body):
        response = client.post('/api/enhance-prompt', json=body)

        assert response.status_code == 400
        assert response.json()['error'] == 'User prompt is required'

    def test_enhance_without_groq(self, settings):
        client, _ = make_client(settings, prompts_enabled=False)

        response = client.post('/api/enhance-prompt', json={'userPrompt': 'cute robot'})

        assert response.status_code == 500
        assert response.json()['error'] == 'GROQ API key is not configured on the server'

    def test_random_prompt_is_trimmed(self, client):
        response = client.post('/api/generate-random-prompt')

        assert response.status_code == 200
        assert response.json() == {'success': True, 'prompt': 'wearing a wizard hat'}

    def test_random_prompt_without_google(self, settings):
        client, _ = make_client(settings, prompts_enabled=False)

        response = client.post('/api/generate-random-prompt')

        assert response.status_code == 500
        assert response.json()['error'] == 'Google API key is not configured on the server'


def test_mock_backend_end_to_end(png_data_url):
    services = GenerationServices(Settings(backend=GeneratorBackend.MOCK))
    client = TestClient(create_app(services=services))

    response = client.post('/api/generate-image', json={'imageBase64': png_data_url, 'prompt': 'cartoon'})

    assert response.status_code == 200
    assert response.json()['imageUrl'].startswith('data:image/png;base64,')
