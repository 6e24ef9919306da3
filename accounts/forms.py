from django import forms
from django.contrib.auth.models import User
from django.core.exceptions import ValidationError


class RegisterForm(forms.Form):
    name = forms.CharField(max_length=150)
    email = forms.EmailField()
    password = forms.CharField(min_length=6, max_length=128)

    def clean_email(self):
        email = self.cleaned_data["email"].strip().lower()
        if User.objects.filter(username__iexact=email).exists():
            raise ValidationError("User with this email already exists")
        return email

    def clean_name(self):
        return self.cleaned_data["name"].strip()


class LoginForm(forms.Form):
    email = forms.EmailField()
    password = forms.CharField(max_length=128)

    def clean_email(self):
        return self.cleaned_data["email"].strip().lower()
