from django.contrib.auth import get_user_model
from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status
from rest_framework_simplejwt.tokens import AccessToken

User = get_user_model()


class AuthenticationAPITestCase(APITestCase):

    def setUp(self):
        self.password = 'Str0ng-pass-123'
        self.user = User.objects.create_user(
            username='amna',
            email='amna@test.com',
            password=self.password,
            user_type='cashier'
        )

    def test_register_returns_tokens(self):
        data = {
            'username': 'haris',
            'email': 'haris@test.com',
            'password': self.password,
            'password_confirm': self.password,
            'user_type': 'manager',
        }

        response = self.client.post(reverse('register'), data)

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        self.assertEqual(response.data['user']['user_type'], 'manager')

    def test_register_password_mismatch(self):
        data = {
            'username': 'haris',
            'email': 'haris@test.com',
            'password': self.password,
            'password_confirm': 'something-else-1',
        }

        response = self.client.post(reverse('register'), data)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password_confirm', response.data)

    def test_login_token_carries_role(self):
        response = self.client.post(
            reverse('login'), {'email': 'amna@test.com', 'password': self.password}
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        token = AccessToken(response.data['access'])
        self.assertEqual(token['user_type'], 'cashier')

    def test_login_wrong_password(self):
        response = self.client.post(
            reverse('login'), {'email': 'amna@test.com', 'password': 'wrong-password'}
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_logout_blacklists_refresh_token(self):
        login = self.client.post(
            reverse('login'), {'email': 'amna@test.com', 'password': self.password}
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {login.data['access']}")

        response = self.client.post(reverse('logout'), {'refresh': login.data['refresh']})
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post(reverse('token_refresh'), {'refresh': login.data['refresh']})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_change_password(self):
        self.client.force_authenticate(self.user)

        response = self.client.post(
            reverse('change_password'),
            {'old_password': self.password, 'new_password': 'An0ther-pass-456'}
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('An0ther-pass-456'))

    def test_profile_requires_authentication(self):
        response = self.client.get(reverse('profile'))

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_rotates_and_retires_old_token(self):
        login = self.client.post(
            reverse('login'), {'email': 'amna@test.com', 'password': self.password}
        )

        response = self.client.post(reverse('token_refresh'), {'refresh': login.data['refresh']})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

        response = self.client.post(reverse('token_refresh'), {'refresh': login.data['refresh']})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_requires_token(self):
        response = self.client.post(reverse('token_refresh'), {})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_profile_update_keeps_role(self):
        self.client.force_authenticate(self.user)

        response = self.client.patch(
            reverse('update_profile'), {'phone_number': '03001234567', 'user_type': 'manager'}
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['phone_number'], '03001234567')
        self.assertEqual(response.data['user_type'], 'cashier')
        self.assertEqual(self.client.get(reverse('profile')).data['phone_number'], '03001234567')
