from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, IsAdminUser
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError
from django.contrib.auth import get_user_model
from django.db.models import Q
from django.shortcuts import get_object_or_404
from .models import Setting, AuditLog
from .serializers import (
    UserSerializer, UserCreateSerializer, UserUpdateSerializer, SettingSerializer, AuditLogSerializer
)
from .utils import create_audit_log, paginate

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Refresh serializer that answers 401 instead of 500 for tokens of deleted users"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except User.DoesNotExist:
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get the current user"""
    return Response(UserSerializer(request.user).data)


# User views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminUser])
def user_list_create(request):
    """List users (search, status=active|inactive) or create a new user"""
    if request.method == 'GET':
        users = User.objects.all().order_by('username')
        search = request.query_params.get('search')
        if search:
            users = users.filter(
                Q(username__icontains=search) | Q(email__icontains=search) |
                Q(first_name__icontains=search) | Q(last_name__icontains=search)
            )
        status_filter = request.query_params.get('status')
        if status_filter in ('active', 'inactive'):
            users = users.filter(is_active=status_filter == 'active')
        return Response(paginate(request, users, UserSerializer))
    else:
        serializer = UserCreateSerializer(data=request.data)
        if serializer.is_valid():
            user = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='User',
                object_id=user.id,
                object_name=user.username,
                changes={'is_staff': user.is_staff},
            )
            return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminUser])
def user_detail(request, pk):
    """Retrieve, update or delete a user"""
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        return Response(UserSerializer(user).data)
    elif request.method in ('PUT', 'PATCH'):
        if user.pk == request.user.pk and request.data.get('is_active') in (False, 'false', 'False'):
            return Response({'error': 'You cannot deactivate your own account'}, status=status.HTTP_400_BAD_REQUEST)
        old = {'is_active': user.is_active, 'is_staff': user.is_staff}
        serializer = UserUpdateSerializer(user, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            user = serializer.save()
            changes = {
                field: {'old': value, 'new': getattr(user, field)}
                for field, value in old.items() if getattr(user, field) != value
            }
            if 'password' in serializer.validated_data:
                changes['password'] = 'changed'
            create_audit_log(
                request=request,
                action='update',
                model_name='User',
                object_id=user.id,
                object_name=user.username,
                changes=changes,
            )
            return Response(UserSerializer(user).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if user.pk == request.user.pk:
            return Response({'error': 'You cannot delete your own account'}, status=status.HTTP_400_BAD_REQUEST)
        username = user.username
        user.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='User',
            object_id=pk,
            object_name=username,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


# Setting views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def setting_list_create(request):
    """List all settings or create a new setting"""
    if request.method == 'GET':
        settings = Setting.objects.all().order_by('key')
        serializer = SettingSerializer(settings, many=True)
        return Response(serializer.data)
    else:
        serializer = SettingSerializer(data=request.data)
        if serializer.is_valid():
            setting = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='Setting',
                object_id=setting.id,
                object_name=setting.key,
                changes={'value': setting.value},
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def setting_detail(request, pk):
    """Retrieve, update or delete a setting"""
    setting = get_object_or_404(Setting, pk=pk)

    if request.method == 'GET':
        serializer = SettingSerializer(setting)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        old_value = setting.value
        serializer = SettingSerializer(setting, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(
                request=request,
                action='update',
                model_name='Setting',
                object_id=setting.id,
                object_name=setting.key,
                changes={'value': {'old': old_value, 'new': setting.value}},
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        create_audit_log(
            request=request,
            action='delete',
            model_name='Setting',
            object_id=setting.id,
            object_name=setting.key,
        )
        setting.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """List audit logs, newest first, filtered by action / model_name / object_reference"""
    queryset = AuditLog.objects.select_related('user').all()

    action_filter = request.query_params.get('action')
    if action_filter:
        queryset = queryset.filter(action=action_filter)

    model_filter = request.query_params.get('model_name')
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)

    reference = request.query_params.get('object_reference')
    if reference:
        queryset = queryset.filter(object_reference=reference)

    queryset = queryset.order_by('-created_at', '-id')
    return Response(paginate(request, queryset, AuditLogSerializer))
