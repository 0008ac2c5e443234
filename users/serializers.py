from rest_framework import serializers
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from attempts.models import Attempt

User = get_user_model()

class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'email', 'first_name', 'last_name', 'role', 'phone_number', 'is_staff']
        read_only_fields = ['is_staff']

class ProfileSerializer(UserSerializer):
    """Students may edit their own details but never their role."""
    class Meta(UserSerializer.Meta):
        read_only_fields = ['email', 'role', 'is_staff']

class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, validators=[validate_password])

    class Meta:
        model = User
        fields = ['id', 'email', 'first_name', 'last_name', 'password', 'role']
        read_only_fields = ['id']

    def create(self, validated_data):
        user = User.objects.create_user(
            username=validated_data['email'],
            email=validated_data['email'],
            password=validated_data['password'],
            first_name=validated_data.get('first_name', ''),
            last_name=validated_data.get('last_name', ''),
            role=validated_data.get('role', User.Role.STUDENT)
        )
        return user

class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        data['user'] = UserSerializer(self.user).data
        return data

class StudentListSerializer(serializers.ModelSerializer):
    tests_taken = serializers.SerializerMethodField()
    last_activity = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'email', 'first_name', 'last_name', 'tests_taken', 'last_activity']

    def get_tests_taken(self, obj):
        return Attempt.objects.filter(user=obj, is_completed=True).count()

    def get_last_activity(self, obj):
        last_attempt = Attempt.objects.filter(user=obj).order_by('-started_at').first()
        if last_attempt:
            return last_attempt.started_at
        return obj.date_joined
